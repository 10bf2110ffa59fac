"""Container group assembly and submission."""

import shlex
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Callable, Dict, List, Optional, Tuple

from cnabazure.constants import (
    AZURE_REGISTRY_SUFFIX,
    BUNDLE_OUTPUTS_DIR,
    BUNDLE_RUN_TOOL,
    CONTAINER_CPU,
    CONTAINER_MEMORY_GB,
    FILE_MOUNT_NAME,
    FILE_MOUNT_POINT,
    HANDLED_IMAGE_TYPES,
    PLACEHOLDER_IMAGE,
    STATE_MOUNT_NAME,
)
from cnabazure.errors import ConfigurationError, DriverError
from cnabazure.errors_catalog import actionable_error
from cnabazure.models import (
    DriverConfig,
    IdentityDetails,
    IdentityMode,
    LoginInfo,
    LoginType,
    Operation,
    RunContext,
)
from cnabazure.services.cloud_api import (
    ContainerGroupInfo,
    ContainerGroupSpec,
    EnvironmentVariable,
    FileShareVolume,
    RegistryCredential,
    SecretVolume,
    VolumeMount,
)
from cnabazure.services.image_reference import normalize_image_reference, registry_domain
from cnabazure.services.io_bridge import IOBridge, outputs_directory


@dataclass(frozen=True)
class EnvironmentSource:
    """Everything the propagated AZURE_* variables are read from."""

    config: DriverConfig
    context: RunContext
    identity: IdentityDetails
    login: Optional[LoginInfo] = None
    tenant_id: str = ""


Accessor = Callable[[EnvironmentSource], str]


def _oauth_token(source: EnvironmentSource) -> str:
    if source.login is None or source.login.token_provider is None:
        return ""
    return source.login.token_provider()


IDENTITY_VARIABLES: Tuple[Tuple[str, Accessor], ...] = (
    (
        "AZURE_MSI_TYPE",
        lambda source: "" if source.identity.mode == IdentityMode.NONE else source.identity.mode.value,
    ),
    (
        "AZURE_USER_MSI_RESOURCE_ID",
        lambda source: (
            source.config.user_msi_resource.raw
            if source.identity.mode == IdentityMode.USER and source.config.user_msi_resource
            else ""
        ),
    ),
)

CONTEXT_VARIABLES: Tuple[Tuple[str, Accessor], ...] = (
    ("AZURE_SUBSCRIPTION_ID", lambda source: source.context.subscription_id),
    (
        "AZURE_TENANT_ID",
        lambda source: source.tenant_id or source.config.tenant_id or source.config.profile_tenant_id,
    ),
)

SERVICE_PRINCIPAL_VARIABLES: Tuple[Tuple[str, Accessor], ...] = (
    ("AZURE_CLIENT_ID", lambda source: source.config.client_id),
    ("AZURE_CLIENT_SECRET", lambda source: source.config.client_secret),
)

TOKEN_VARIABLES: Tuple[Tuple[str, Accessor], ...] = (("AZURE_OAUTH_TOKEN", _oauth_token),)


class LaunchPhase(str, Enum):
    ALLOCATE_IDENTITY = "allocate_identity"
    BIND_ROLE = "bind_role"
    SUBMIT = "submit"
    SUBMITTED = "submitted"


class InstanceLauncher:
    """Builds the container group for one operation and submits it."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def build_environment(self, source: EnvironmentSource, operation: Operation) -> Tuple[EnvironmentVariable, ...]:
        environment: Dict[str, str] = {}
        self._apply(environment, IDENTITY_VARIABLES, source)

        if source.config.propagate_credentials:
            self._apply(environment, CONTEXT_VARIABLES, source)
            if source.identity.mode == IdentityMode.NONE:
                self._apply(environment, self._credential_variables(source), source)

        environment.update(operation.environment)
        return tuple(
            EnvironmentVariable(name=name, value=value, secure=True)
            for name, value in environment.items()
        )

    @staticmethod
    def _credential_variables(source: EnvironmentSource) -> Tuple[Tuple[str, Accessor], ...]:
        if source.login is None:
            return ()
        if source.login.login_type == LoginType.SERVICE_PRINCIPAL:
            return SERVICE_PRINCIPAL_VARIABLES
        if source.login.login_type.is_interactive:
            return TOKEN_VARIABLES
        return ()

    @staticmethod
    def _apply(environment: Dict[str, str], table, source: EnvironmentSource):
        for name, accessor in table:
            value = accessor(source)
            if value:
                environment[name] = value

    @staticmethod
    def registry_credentials(config: DriverConfig, image: str) -> Tuple[RegistryCredential, ...]:
        if not config.has_registry_credentials:
            return ()

        server = registry_domain(image)
        if config.use_client_creds_for_registry and not server.lower().endswith(AZURE_REGISTRY_SUFFIX):
            raise ConfigurationError(actionable_error("registry_not_acr", domain=server))

        return (
            RegistryCredential(
                server=server,
                username=config.registry_username,
                password=config.registry_password,
            ),
        )

    @staticmethod
    def build_entrypoint(operation: Operation, config: DriverConfig) -> Tuple[str, ...]:
        """Shell command replacing the image entrypoint, empty when the image runs as is."""
        needs_outputs = bool(operation.outputs) and bool(config.state_fileshare)
        if not operation.files and not needs_outputs and not config.debug_container:
            return ()

        lines: List[str] = ["set -e"]
        for index in range(len(operation.files)):
            path_file = shlex.quote(f"{FILE_MOUNT_POINT}/path{index}")
            value_file = shlex.quote(f"{FILE_MOUNT_POINT}/value{index}")
            lines.append(f'target="$(cat {path_file})"')
            lines.append('mkdir -p "$(dirname "$target")"')
            lines.append(f'cp {value_file} "$target"')

        if needs_outputs:
            outputs_dir = shlex.quote(outputs_directory(config.state_mount_point, operation))
            lines.append(f"mkdir -p {outputs_dir}")
            lines.append(f"mkdir -p {shlex.quote(str(PurePosixPath(BUNDLE_OUTPUTS_DIR).parent))}")
            lines.append(f"rm -rf {shlex.quote(BUNDLE_OUTPUTS_DIR)}")
            lines.append(f"ln -s {outputs_dir} {shlex.quote(BUNDLE_OUTPUTS_DIR)}")

        if config.debug_container:
            lines.append("tail -f /dev/null")
        else:
            lines.append(f"exec {BUNDLE_RUN_TOOL}")

        return ("/bin/sh", "-c", "\n".join(lines))

    @classmethod
    def preflight(cls, operation: Operation, config: DriverConfig) -> str:
        """Check the invocation image against the configuration and return the reference to run."""
        if operation.image.image_type not in HANDLED_IMAGE_TYPES:
            raise ConfigurationError(
                f"Image type {operation.image.image_type} is not supported, "
                f"supported types are {','.join(HANDLED_IMAGE_TYPES)}"
            )

        image = normalize_image_reference(operation.image.image, operation.image.digest)
        cls.registry_credentials(config, image)
        return image

    def build_spec(self, operation: Operation, source: EnvironmentSource) -> ContainerGroupSpec:
        config = source.config
        context = source.context
        image = self.preflight(operation, config)

        volumes = []
        mounts = []
        if operation.files:
            volumes.append(SecretVolume(name=FILE_MOUNT_NAME, secrets=IOBridge.encode_files(operation.files)))
            mounts.append(VolumeMount(name=FILE_MOUNT_NAME, mount_path=FILE_MOUNT_POINT, read_only=True))
        if config.state_fileshare:
            volumes.append(
                FileShareVolume(
                    name=STATE_MOUNT_NAME,
                    share_name=config.state_fileshare,
                    storage_account_name=config.state_storage_account_name,
                    storage_account_key=config.state_storage_account_key,
                )
            )
            mounts.append(VolumeMount(name=STATE_MOUNT_NAME, mount_path=config.state_mount_point))

        return ContainerGroupSpec(
            name=context.instance_name,
            location=context.location,
            image=image,
            cpu=CONTAINER_CPU,
            memory_gb=CONTAINER_MEMORY_GB,
            environment=self.build_environment(source, operation),
            command=self.build_entrypoint(operation, config),
            volumes=tuple(volumes),
            volume_mounts=tuple(mounts),
            identity=source.identity.identity,
            registry_credentials=self.registry_credentials(config, image),
        )

    def launch(
        self,
        cloud,
        context: RunContext,
        spec: ContainerGroupSpec,
        identity: IdentityDetails,
        bind_role: Callable[[str], None],
    ) -> ContainerGroupInfo:
        phase = LaunchPhase.ALLOCATE_IDENTITY if identity.mode == IdentityMode.SYSTEM else LaunchPhase.SUBMIT
        info = None

        while phase != LaunchPhase.SUBMITTED:
            self.logger.debug("Launch phase %s for %s", phase.value, spec.name)

            if phase == LaunchPhase.ALLOCATE_IDENTITY:
                self.console.print(f"[blue]Creating container group {spec.name} to allocate its identity...[/blue]")
                placeholder = ContainerGroupSpec(
                    name=spec.name,
                    location=spec.location,
                    image=PLACEHOLDER_IMAGE,
                    cpu=spec.cpu,
                    memory_gb=spec.memory_gb,
                    identity=spec.identity,
                )
                info = cloud.create_or_update_container_group(context.resource_group, placeholder)
                if not info.principal_id:
                    raise DriverError(f"Container group {spec.name} was created without a principal id")
                phase = LaunchPhase.BIND_ROLE

            elif phase == LaunchPhase.BIND_ROLE:
                bind_role(info.principal_id)
                phase = LaunchPhase.SUBMIT

            elif phase == LaunchPhase.SUBMIT:
                self.console.print(f"[blue]Running {spec.image} in container group {spec.name}...[/blue]")
                info = cloud.create_or_update_container_group(context.resource_group, spec)
                phase = LaunchPhase.SUBMITTED

        return info
