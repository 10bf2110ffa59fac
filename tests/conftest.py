import pytest

from cnabazure.errors import DriverError
from cnabazure.models import DriverConfig
from cnabazure.services.cloud_api import (
    CloudControlAPI,
    ContainerGroupInfo,
    ManagedIdentity,
    ResourceGroup,
    RoleDefinition,
    Subscription,
)
from cnabazure.services.file_share import StateStore

SUBSCRIPTION_ID = "11111111-2222-3333-4444-555555555555"
TENANT_ID = "99999999-8888-7777-6666-555555555555"


class FakeCloud(CloudControlAPI):
    """In-memory Cloud Control API recording every call."""

    def __init__(self):
        self.subscription_id = None
        self.calls = []
        self.subscriptions = [Subscription(SUBSCRIPTION_ID, "test", TENANT_ID)]
        self.resource_groups = {}
        self.locations = ["East US", "West Europe"]
        self.states = ["Succeeded"]
        self.logs = [""]
        self.container_groups = []
        self.role_definitions = [
            RoleDefinition(id="/providers/roleDefinitions/contributor", role_name="Contributor"),
        ]
        self.role_assignments = []
        self.role_assignment_failures = 0
        self.identities = {}
        self.storage_keys = {}
        self.errors = {}

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.errors:
            raise self.errors[name]

    def call_names(self):
        return [call[0] for call in self.calls]

    def count(self, name):
        return self.call_names().count(name)

    def for_subscription(self, subscription_id):
        self._record("for_subscription", subscription_id)
        self.subscription_id = subscription_id
        return self

    def get_subscription(self, subscription_id):
        self._record("get_subscription", subscription_id)
        for subscription in self.subscriptions:
            if subscription.subscription_id == subscription_id:
                return subscription
        return None

    def list_subscriptions(self):
        self._record("list_subscriptions")
        return list(self.subscriptions)

    def get_resource_group(self, name):
        self._record("get_resource_group", name)
        if name not in self.resource_groups:
            raise DriverError(f"Failed to get resource group {name}: not found")
        return self.resource_groups[name]

    def create_resource_group(self, name, location):
        self._record("create_resource_group", name, location)
        self.resource_groups[name] = ResourceGroup(name=name, location=location)
        return self.resource_groups[name]

    def delete_resource_group(self, name):
        self._record("delete_resource_group", name)
        self.resource_groups.pop(name, None)

    def get_provider_locations(self, provider, resource_type):
        self._record("get_provider_locations", provider, resource_type)
        return list(self.locations)

    def create_or_update_container_group(self, resource_group, spec):
        self._record("create_or_update_container_group", resource_group, spec)
        self.container_groups.append((resource_group, spec))
        principal_id = "principal-1" if spec.identity.type == "SystemAssigned" else ""
        return ContainerGroupInfo(name=spec.name, principal_id=principal_id, state="Pending")

    def delete_container_group(self, resource_group, name):
        self._record("delete_container_group", resource_group, name)

    def get_container_group_state(self, resource_group, name):
        self._record("get_container_group_state", resource_group, name)
        if len(self.states) > 1:
            return self.states.pop(0)
        return self.states[0]

    def get_container_logs(self, resource_group, name):
        self._record("get_container_logs", resource_group, name)
        if len(self.logs) > 1:
            return self.logs.pop(0)
        return self.logs[0]

    def list_role_definitions(self, scope):
        self._record("list_role_definitions", scope)
        return list(self.role_definitions)

    def create_role_assignment(self, scope, assignment_name, role_definition_id, principal_id):
        self._record("create_role_assignment", scope, assignment_name, role_definition_id, principal_id)
        if self.role_assignment_failures > 0:
            self.role_assignment_failures -= 1
            raise DriverError(f"Failed to create role assignment for scope {scope}: PrincipalNotFound")
        self.role_assignments.append((scope, assignment_name, role_definition_id, principal_id))

    def get_user_assigned_identity(self, resource_group, name):
        self._record("get_user_assigned_identity", resource_group, name)
        return self.identities.get(
            (resource_group, name),
            ManagedIdentity(
                id=(
                    f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{resource_group}"
                    f"/providers/Microsoft.ManagedIdentity/userAssignedIdentities/{name}"
                ),
                principal_id="user-principal",
                client_id="user-client",
            ),
        )


    def get_storage_account_key(self, resource_group, account_name):
        self._record("get_storage_account_key", resource_group, account_name)
        return self.storage_keys.get((resource_group, account_name), "clouddrive-key")

class FakeStore(StateStore):
    def __init__(self, files=None):
        self.files = dict(files or {})
        self.deleted = []
        self.fail_delete = False

    def exists(self, path):
        return path in self.files

    def read(self, path):
        return self.files[path]

    def delete(self, path):
        if self.fail_delete:
            raise DriverError(f"Failed to delete {path}")
        self.deleted.append(path)
        self.files.pop(path, None)


class DummyLogger:
    def __init__(self):
        self.warnings = []

    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, message, *args, **_kwargs):
        self.warnings.append(message % args if args else message)

    def error(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def __init__(self):
        self.messages = []

    def print(self, message, *_args, **_kwargs):
        self.messages.append(str(message))


@pytest.fixture
def fake_cloud():
    return FakeCloud()


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def dummy_logger():
    return DummyLogger()


@pytest.fixture
def dummy_console():
    return DummyConsole()


@pytest.fixture
def no_sleep(monkeypatch):
    sleeps = []
    monkeypatch.setattr("time.sleep", lambda seconds: sleeps.append(seconds))
    return sleeps


def make_config(**overrides):
    values = {
        "location": "eastus",
        "resource_group": "cnab-azure-test-rg",
        "create_resource_group": True,
        "instance_name": "cnab-azure-test",
        "system_msi_role": "Contributor",
        "state_mount_point": "/mnt/cnab-azure/state",
        "msi_audience": "https://management.azure.com/",
    }
    values.update(overrides)
    return DriverConfig(**values)


@pytest.fixture
def config_factory():
    return make_config
