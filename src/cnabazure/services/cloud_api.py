"""Cloud control surface used by the driver services."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from cnabazure.models import ContainerIdentity


@dataclass(frozen=True)
class Subscription:
    subscription_id: str
    display_name: str = ""
    tenant_id: str = ""


@dataclass(frozen=True)
class ResourceGroup:
    name: str
    location: str


@dataclass(frozen=True)
class RoleDefinition:
    id: str
    role_name: str


@dataclass(frozen=True)
class ManagedIdentity:
    id: str
    principal_id: str = ""
    client_id: str = ""


@dataclass(frozen=True)
class EnvironmentVariable:
    name: str
    value: str
    secure: bool = True


@dataclass(frozen=True)
class SecretVolume:
    name: str
    # secret entry name -> base64 content
    secrets: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FileShareVolume:
    name: str
    share_name: str
    storage_account_name: str
    storage_account_key: str


Volume = Union[SecretVolume, FileShareVolume]


@dataclass(frozen=True)
class VolumeMount:
    name: str
    mount_path: str
    read_only: bool = False


@dataclass(frozen=True)
class RegistryCredential:
    server: str
    username: str
    password: str


@dataclass(frozen=True)
class ContainerGroupSpec:
    """Desired state of the single-container group running one bundle action."""

    name: str
    location: str
    image: str
    cpu: float
    memory_gb: float
    environment: Tuple[EnvironmentVariable, ...] = ()
    command: Tuple[str, ...] = ()
    volumes: Tuple[Volume, ...] = ()
    volume_mounts: Tuple[VolumeMount, ...] = ()
    identity: ContainerIdentity = field(default_factory=ContainerIdentity)
    registry_credentials: Tuple[RegistryCredential, ...] = ()
    restart_policy: str = "Never"
    os_type: str = "Linux"


@dataclass(frozen=True)
class ContainerGroupInfo:
    name: str
    principal_id: str = ""
    state: str = ""


class CloudControlAPI(ABC):
    """Subscription-bound view of the Azure management plane."""

    subscription_id: Optional[str] = None

    @abstractmethod
    def for_subscription(self, subscription_id: str) -> "CloudControlAPI":
        """Return a client bound to ``subscription_id``."""

    @abstractmethod
    def get_subscription(self, subscription_id: str) -> Optional[Subscription]:
        """Return the subscription, or ``None`` when it is not visible to the login."""

    @abstractmethod
    def list_subscriptions(self) -> List[Subscription]:
        pass

    @abstractmethod
    def get_resource_group(self, name: str) -> ResourceGroup:
        pass

    @abstractmethod
    def create_resource_group(self, name: str, location: str) -> ResourceGroup:
        pass

    @abstractmethod
    def delete_resource_group(self, name: str):
        pass

    @abstractmethod
    def get_provider_locations(self, provider: str, resource_type: str) -> List[str]:
        """Return the display names of the regions where ``resource_type`` is offered."""

    @abstractmethod
    def create_or_update_container_group(
        self,
        resource_group: str,
        spec: ContainerGroupSpec,
    ) -> ContainerGroupInfo:
        pass

    @abstractmethod
    def delete_container_group(self, resource_group: str, name: str):
        pass

    @abstractmethod
    def get_container_group_state(self, resource_group: str, name: str) -> str:
        pass

    @abstractmethod
    def get_container_logs(self, resource_group: str, name: str) -> str:
        """Return the full log text of the group's only container."""

    @abstractmethod
    def list_role_definitions(self, scope: str) -> List[RoleDefinition]:
        pass

    @abstractmethod
    def create_role_assignment(
        self,
        scope: str,
        assignment_name: str,
        role_definition_id: str,
        principal_id: str,
    ):
        pass

    @abstractmethod
    def get_user_assigned_identity(self, resource_group: str, name: str) -> ManagedIdentity:
        pass

    @abstractmethod
    def get_storage_account_key(self, resource_group: str, account_name: str) -> str:
        pass
