"""Azure SDK implementation of the cloud control surface."""

from contextlib import contextmanager
from typing import List, Optional

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.mgmt.authorization import AuthorizationManagementClient
from azure.mgmt.authorization.models import RoleAssignmentCreateParameters
from azure.mgmt.containerinstance import ContainerInstanceManagementClient
from azure.mgmt.containerinstance import models as aci
from azure.mgmt.msi import ManagedServiceIdentityClient
from azure.mgmt.resource import ResourceManagementClient, SubscriptionClient
from azure.mgmt.storage import StorageManagementClient

from cnabazure.constants import USER_AGENT
from cnabazure.errors import DriverError
from cnabazure.services.cloud_api import (
    CloudControlAPI,
    ContainerGroupInfo,
    ContainerGroupSpec,
    FileShareVolume,
    ManagedIdentity,
    ResourceGroup,
    RoleDefinition,
    SecretVolume,
    Subscription,
)


@contextmanager
def azure_errors(action: str, target: str):
    try:
        yield
    except AzureError as exc:
        raise DriverError(f"Failed to {action} {target}: {exc}") from exc


class AzureCloudControl(CloudControlAPI):
    """Talks to Azure Resource Manager through the azure-mgmt client libraries."""

    def __init__(self, credential, logger, subscription_id: Optional[str] = None):
        self.credential = credential
        self.logger = logger
        self.subscription_id = subscription_id
        self._clients = {}

    def _client(self, client_class):
        if client_class not in self._clients:
            if self.subscription_id is None:
                raise DriverError(f"{client_class.__name__} requires a subscription id")
            self._clients[client_class] = client_class(
                self.credential,
                self.subscription_id,
                user_agent=USER_AGENT,
            )
        return self._clients[client_class]

    def for_subscription(self, subscription_id: str) -> "AzureCloudControl":
        if subscription_id == self.subscription_id:
            return self
        return AzureCloudControl(self.credential, self.logger, subscription_id=subscription_id)

    def get_subscription(self, subscription_id: str) -> Optional[Subscription]:
        client = SubscriptionClient(self.credential, user_agent=USER_AGENT)
        try:
            result = client.subscriptions.get(subscription_id)
        except ResourceNotFoundError:
            return None
        except AzureError as exc:
            raise DriverError(f"Failed to get subscription {subscription_id}: {exc}") from exc
        return Subscription(
            subscription_id=result.subscription_id,
            display_name=result.display_name or "",
            tenant_id=getattr(result, "tenant_id", "") or "",
        )

    def list_subscriptions(self) -> List[Subscription]:
        client = SubscriptionClient(self.credential, user_agent=USER_AGENT)
        with azure_errors("list", "subscriptions"):
            return [
                Subscription(
                    subscription_id=item.subscription_id,
                    display_name=item.display_name or "",
                    tenant_id=getattr(item, "tenant_id", "") or "",
                )
                for item in client.subscriptions.list()
            ]

    def get_resource_group(self, name: str) -> ResourceGroup:
        with azure_errors("get resource group", name):
            result = self._client(ResourceManagementClient).resource_groups.get(name)
        return ResourceGroup(name=result.name, location=result.location)

    def create_resource_group(self, name: str, location: str) -> ResourceGroup:
        with azure_errors("create resource group", name):
            result = self._client(ResourceManagementClient).resource_groups.create_or_update(
                name,
                {"location": location},
            )
        return ResourceGroup(name=result.name, location=result.location)

    def delete_resource_group(self, name: str):
        with azure_errors("delete resource group", name):
            self._client(ResourceManagementClient).resource_groups.begin_delete(name).result()

    def get_provider_locations(self, provider: str, resource_type: str) -> List[str]:
        with azure_errors("get provider", provider):
            result = self._client(ResourceManagementClient).providers.get(provider)
        for item in result.resource_types or []:
            if (item.resource_type or "").lower() == resource_type.lower():
                return list(item.locations or [])
        return []

    def create_or_update_container_group(
        self,
        resource_group: str,
        spec: ContainerGroupSpec,
    ) -> ContainerGroupInfo:
        group = self._build_container_group(spec)
        self.logger.debug(
            "Submitting container group %s with image %s and environment %s",
            spec.name,
            spec.image,
            [variable.name for variable in spec.environment],
        )
        with azure_errors("create container group", spec.name):
            poller = self._client(ContainerInstanceManagementClient).container_groups.begin_create_or_update(
                resource_group,
                spec.name,
                group,
            )
            result = poller.result()

        principal_id = ""
        if result.identity is not None and result.identity.principal_id:
            principal_id = result.identity.principal_id
        state = result.instance_view.state if result.instance_view is not None else ""
        return ContainerGroupInfo(name=result.name, principal_id=principal_id, state=state or "")

    def delete_container_group(self, resource_group: str, name: str):
        with azure_errors("delete container group", name):
            self._client(ContainerInstanceManagementClient).container_groups.begin_delete(
                resource_group,
                name,
            ).result()

    def get_container_group_state(self, resource_group: str, name: str) -> str:
        with azure_errors("get container group", name):
            result = self._client(ContainerInstanceManagementClient).container_groups.get(
                resource_group,
                name,
            )
        if result.instance_view is None or not result.instance_view.state:
            return "Pending"
        return result.instance_view.state

    def get_container_logs(self, resource_group: str, name: str) -> str:
        with azure_errors("get logs for container", name):
            logs = self._client(ContainerInstanceManagementClient).containers.list_logs(
                resource_group,
                name,
                name,
            )
        return logs.content or ""

    def list_role_definitions(self, scope: str) -> List[RoleDefinition]:
        with azure_errors("list role definitions for scope", scope):
            return [
                RoleDefinition(id=item.id, role_name=item.role_name)
                for item in self._client(AuthorizationManagementClient).role_definitions.list(scope)
            ]

    def create_role_assignment(
        self,
        scope: str,
        assignment_name: str,
        role_definition_id: str,
        principal_id: str,
    ):
        parameters = RoleAssignmentCreateParameters(
            role_definition_id=role_definition_id,
            principal_id=principal_id,
            principal_type="ServicePrincipal",
        )
        with azure_errors("create role assignment for scope", scope):
            self._client(AuthorizationManagementClient).role_assignments.create(
                scope,
                assignment_name,
                parameters,
            )

    def get_user_assigned_identity(self, resource_group: str, name: str) -> ManagedIdentity:
        with azure_errors("get user assigned identity", name):
            result = self._client(ManagedServiceIdentityClient).user_assigned_identities.get(
                resource_group,
                name,
            )
        return ManagedIdentity(
            id=result.id,
            principal_id=result.principal_id or "",
            client_id=result.client_id or "",
        )

    def get_storage_account_key(self, resource_group: str, account_name: str) -> str:
        with azure_errors("list keys for storage account", account_name):
            result = self._client(StorageManagementClient).storage_accounts.list_keys(
                resource_group,
                account_name,
            )
        if not result.keys:
            raise DriverError(f"Storage account {account_name} has no access keys")
        return result.keys[0].value

    @staticmethod
    def _build_container_group(spec: ContainerGroupSpec):
        resources = aci.ResourceRequirements(
            requests=aci.ResourceRequests(memory_in_gb=spec.memory_gb, cpu=spec.cpu),
            limits=aci.ResourceLimits(memory_in_gb=spec.memory_gb, cpu=spec.cpu),
        )
        environment = [
            aci.EnvironmentVariable(name=item.name, secure_value=item.value)
            if item.secure
            else aci.EnvironmentVariable(name=item.name, value=item.value)
            for item in spec.environment
        ]
        container = aci.Container(
            name=spec.name,
            image=spec.image,
            resources=resources,
            command=list(spec.command) or None,
            environment_variables=environment,
            volume_mounts=[
                aci.VolumeMount(name=mount.name, mount_path=mount.mount_path, read_only=mount.read_only)
                for mount in spec.volume_mounts
            ]
            or None,
        )

        volumes = []
        for volume in spec.volumes:
            if isinstance(volume, SecretVolume):
                volumes.append(aci.Volume(name=volume.name, secret=dict(volume.secrets)))
            elif isinstance(volume, FileShareVolume):
                volumes.append(
                    aci.Volume(
                        name=volume.name,
                        azure_file=aci.AzureFileVolume(
                            share_name=volume.share_name,
                            storage_account_name=volume.storage_account_name,
                            storage_account_key=volume.storage_account_key,
                        ),
                    )
                )

        identity = None
        if spec.identity.type:
            user_assigned = None
            if spec.identity.user_assigned_ids:
                user_assigned = {
                    identity_id: aci.UserAssignedIdentities()
                    for identity_id in spec.identity.user_assigned_ids
                }
            identity = aci.ContainerGroupIdentity(
                type=spec.identity.type,
                user_assigned_identities=user_assigned,
            )

        return aci.ContainerGroup(
            location=spec.location,
            containers=[container],
            os_type=spec.os_type,
            restart_policy=spec.restart_policy,
            identity=identity,
            volumes=volumes or None,
            image_registry_credentials=[
                aci.ImageRegistryCredential(
                    server=credential.server,
                    username=credential.username,
                    password=credential.password,
                )
                for credential in spec.registry_credentials
            ]
            or None,
        )
