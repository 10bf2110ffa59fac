"""Shared domain models for the CNAB Azure driver."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple


class LoginType(str, Enum):
    """Credential source that produced the Azure login."""

    SERVICE_PRINCIPAL = "service_principal"
    DEVICE_CODE = "device_code"
    CLOUD_SHELL = "cloud_shell"
    MSI = "msi"
    CLI = "cli"

    @property
    def is_interactive(self) -> bool:
        return self in (LoginType.DEVICE_CODE, LoginType.CLOUD_SHELL, LoginType.CLI)


class IdentityMode(str, Enum):
    """Managed identity attached to the container group."""

    NONE = "none"
    SYSTEM = "system"
    USER = "user"


@dataclass(frozen=True)
class ResourceId:
    """Parsed Azure resource id."""

    subscription_id: str
    resource_group: str
    provider: str
    resource_type: str
    resource_name: str
    raw: str


@dataclass(frozen=True)
class CloudDrive:
    """The clouddrive file share mounted in every Cloud Shell session."""

    share_name: str
    storage_account: ResourceId


@dataclass(frozen=True)
class DriverConfig:
    """Validated driver settings, built once per process from the environment."""

    location: str
    resource_group: str
    create_resource_group: bool
    instance_name: str
    verbose: bool = False
    client_id: str = ""
    client_secret: str = ""
    tenant_id: str = ""
    app_id: str = ""
    subscription_id: str = ""
    delete_resources: bool = True
    msi_type: IdentityMode = IdentityMode.NONE
    system_msi_role: str = ""
    system_msi_scope: str = ""
    user_msi_resource: Optional[ResourceId] = None
    propagate_credentials: bool = False
    use_client_creds_for_registry: bool = False
    registry_username: str = ""
    registry_password: str = ""
    state_fileshare: str = ""
    state_storage_account_name: str = ""
    state_storage_account_key: str = ""
    state_mount_point: str = ""
    delete_outputs_from_fileshare: bool = True
    debug_container: bool = False
    msi_audience: str = ""
    in_cloud_shell: bool = False
    msi_endpoint: str = ""
    profile_tenant_id: str = ""
    cloud_drive: Optional[CloudDrive] = None

    @property
    def has_state_store(self) -> bool:
        return bool(self.state_fileshare) or self.uses_cloud_drive

    @property
    def uses_cloud_drive(self) -> bool:
        return self.cloud_drive is not None and not self.state_fileshare

    @property
    def has_registry_credentials(self) -> bool:
        return bool(self.registry_username and self.registry_password)

    @property
    def cleanup_enabled(self) -> bool:
        # a debug container is left running for inspection
        return self.delete_resources and not self.debug_container

    @property
    def uses_service_principal(self) -> bool:
        return bool(self.client_id and self.client_secret and self.tenant_id)


@dataclass(frozen=True)
class InvocationImage:
    image: str
    image_type: str = "docker"
    digest: str = ""


@dataclass(frozen=True)
class OutputDefinition:
    name: str
    apply_to: Tuple[str, ...] = ()

    def applies_to(self, action: str) -> bool:
        if not self.apply_to:
            return True
        return action in self.apply_to


@dataclass(frozen=True)
class BundleInfo:
    name: str
    version: str = ""
    outputs: Dict[str, OutputDefinition] = field(default_factory=dict)


@dataclass(frozen=True)
class Operation:
    """A single CNAB action to execute, as handed over by the orchestrator."""

    action: str
    installation: str
    image: InvocationImage
    revision: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)
    environment: Dict[str, str] = field(default_factory=dict)
    files: Dict[str, str] = field(default_factory=dict)
    # output name -> path inside the invocation image
    outputs: Dict[str, str] = field(default_factory=dict)
    bundle: Optional[BundleInfo] = None

    @property
    def bundle_name(self) -> str:
        if self.bundle and self.bundle.name:
            return self.bundle.name
        return self.environment.get("CNAB_BUNDLE_NAME", "bundle")

    def output_applies(self, name: str) -> bool:
        if self.bundle is None or name not in self.bundle.outputs:
            return True
        return self.bundle.outputs[name].applies_to(self.action)


@dataclass(frozen=True)
class OperationResult:
    # output name -> content
    outputs: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class LoginInfo:
    """Resolved Azure login for one operation."""

    credential: Any
    login_type: LoginType
    token_provider: Optional[Callable[[], str]] = None


@dataclass(frozen=True)
class ContainerIdentity:
    type: Optional[str] = None
    user_assigned_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class IdentityDetails:
    mode: IdentityMode
    identity: ContainerIdentity = field(default_factory=ContainerIdentity)
    scope: Optional[str] = None
    role: Optional[str] = None


@dataclass(frozen=True)
class RunContext:
    """Runtime identifiers resolved for one execution."""

    subscription_id: str
    resource_group: str
    location: str
    instance_name: str
    created_resource_group: bool = False
