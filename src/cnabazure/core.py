import logging
from dataclasses import replace
from typing import Callable, Optional

import requests
from rich.console import Console

from .errors import ConfigurationError, DriverError
from .models import DriverConfig, Operation, OperationResult, RunContext
from .services.azure_cloud import AzureCloudControl
from .services.cloud_api import CloudControlAPI, Subscription
from .services.credentials import CredentialResolver
from .services.file_share import AzureFileShareStore, StateStore
from .services.identity import IdentityPlanner
from .services.io_bridge import IOBridge
from .services.launcher import EnvironmentSource, InstanceLauncher
from .services.monitor import RunMonitor
from .services.provisioner import ResourceProvisioner
from .services.rbac import RoleBinder
from .services.teardown import TeardownStack

console = Console()
error_console = Console(stderr=True)
logger = logging.getLogger("cnabazure")


def _azure_cloud(credential) -> CloudControlAPI:
    return AzureCloudControl(credential, logger)


def _azure_file_share(config: DriverConfig) -> StateStore:
    return AzureFileShareStore(
        account_name=config.state_storage_account_name,
        account_key=config.state_storage_account_key,
        share_name=config.state_fileshare,
        logger=logger,
    )


class AzureDriver:
    """Runs one CNAB operation in an Azure Container Instance."""

    def __init__(
        self,
        config: DriverConfig,
        cloud_factory: Callable[..., CloudControlAPI] = _azure_cloud,
        store_factory: Callable[[DriverConfig], StateStore] = _azure_file_share,
        credential_resolver: Optional[CredentialResolver] = None,
    ):
        self.config = config
        self.cloud_factory = cloud_factory
        self.store_factory = store_factory
        self.credential_resolver = credential_resolver or CredentialResolver(
            logger=logger,
            console=console,
            requests_module=requests,
        )

        self.provisioner = ResourceProvisioner(logger=logger, console=console)
        self.identity_planner = IdentityPlanner(logger=logger)
        self.launcher = InstanceLauncher(logger=logger, console=console)
        self.role_binder = RoleBinder(logger=logger, console=console)
        self.monitor = RunMonitor(logger=logger, console=console)
        self.io_bridge = IOBridge(logger=logger, console=console)
        self.teardown = TeardownStack(logger=logger, error_console=error_console)

    def resolve_subscription(self, cloud: CloudControlAPI) -> Subscription:
        if self.config.subscription_id:
            subscription = cloud.get_subscription(self.config.subscription_id)
            if subscription is None:
                raise ConfigurationError(
                    f"Subscription {self.config.subscription_id} was not found or is not "
                    "accessible with the current login"
                )
            return subscription

        subscriptions = cloud.list_subscriptions()
        if not subscriptions:
            raise DriverError("No Azure subscriptions are available for the current login")

        subscription = subscriptions[0]
        logger.debug("Using first available subscription %s", subscription.subscription_id)
        return subscription

    def _register_instance_cleanup(self, cloud: CloudControlAPI, context: RunContext):
        if not self.config.cleanup_enabled:
            return

        def delete_instance():
            console.print(f"[blue]Deleting container group {context.instance_name}...[/blue]")
            cloud.delete_container_group(context.resource_group, context.instance_name)

        self.teardown.push(f"delete container group {context.instance_name}", delete_instance)

    def resolve_cloud_drive(self, cloud: CloudControlAPI, config: DriverConfig) -> DriverConfig:
        """Fill in the state share settings from the Cloud Shell clouddrive."""
        account = config.cloud_drive.storage_account
        logger.debug("Using clouddrive share %s in %s", config.cloud_drive.share_name, account.resource_name)
        key = cloud.for_subscription(account.subscription_id).get_storage_account_key(
            account.resource_group,
            account.resource_name,
        )
        return replace(
            config,
            state_fileshare=config.cloud_drive.share_name,
            state_storage_account_name=account.resource_name,
            state_storage_account_key=key,
        )

    def run(self, operation: Operation) -> OperationResult:
        config = self.config
        self.io_bridge.require_store(operation, config.has_state_store)
        self.launcher.preflight(operation, config)

        store = None
        if operation.outputs and not config.uses_cloud_drive:
            store = self.store_factory(config)

        try:
            logger.info("Running action %s for %s", operation.action, operation.installation)
            login = self.credential_resolver.resolve(config)
            cloud = self.cloud_factory(login.credential)

            subscription = self.resolve_subscription(cloud)
            cloud = cloud.for_subscription(subscription.subscription_id)

            if config.uses_cloud_drive:
                config = self.resolve_cloud_drive(cloud, config)
                if operation.outputs:
                    store = self.store_factory(config)

            context = self.provisioner.provision(
                config,
                cloud,
                subscription.subscription_id,
                self.teardown,
            )
            identity = self.identity_planner.plan(config, context, cloud)
            source = EnvironmentSource(
                config=config,
                context=context,
                identity=identity,
                login=login,
                tenant_id=subscription.tenant_id,
            )
            spec = self.launcher.build_spec(operation, source)

            self._register_instance_cleanup(cloud, context)
            self.launcher.launch(
                cloud,
                context,
                spec,
                identity,
                bind_role=lambda principal_id: self.role_binder.bind(
                    cloud,
                    identity.role,
                    identity.scope,
                    principal_id,
                ),
            )

            if config.debug_container:
                console.print(
                    f"[yellow]Debug container {context.instance_name} left running in "
                    f"{context.resource_group}. Connect with `az container exec -g "
                    f"{context.resource_group} -n {context.instance_name} --exec-command /bin/sh`.[/yellow]"
                )
                return OperationResult()

            self.monitor.wait(cloud, context.resource_group, context.instance_name)

            outputs = {}
            if store is not None:
                outputs = self.io_bridge.collect_outputs(
                    operation,
                    store,
                    config.delete_outputs_from_fileshare,
                )
            return OperationResult(outputs=outputs)
        finally:
            self.teardown.run()
