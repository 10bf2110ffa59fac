import pytest

from cnabazure.errors import ConfigurationError
from cnabazure.models import (
    BundleInfo,
    ContainerIdentity,
    IdentityDetails,
    IdentityMode,
    InvocationImage,
    LoginInfo,
    LoginType,
    Operation,
    ResourceId,
    RunContext,
)
from cnabazure.services.cloud_api import FileShareVolume, SecretVolume
from cnabazure.services.launcher import EnvironmentSource, InstanceLauncher, LaunchPhase

SUBSCRIPTION = "11111111-2222-3333-4444-555555555555"

CONTEXT = RunContext(
    subscription_id=SUBSCRIPTION,
    resource_group="run-rg",
    location="eastus",
    instance_name="cnab-azure-test",
)

NO_IDENTITY = IdentityDetails(mode=IdentityMode.NONE)
SYSTEM_IDENTITY = IdentityDetails(
    mode=IdentityMode.SYSTEM,
    identity=ContainerIdentity(type="SystemAssigned"),
    scope=f"/subscriptions/{SUBSCRIPTION}/resourceGroups/run-rg",
    role="Contributor",
)


def build_operation(**overrides):
    values = {
        "action": "install",
        "installation": "demo",
        "image": InvocationImage(image="example.azurecr.io/app:1.0"),
        "environment": {"CNAB_ACTION": "install"},
        "bundle": BundleInfo(name="hello"),
    }
    values.update(overrides)
    return Operation(**values)


def environment_of(spec):
    return {variable.name: variable.value for variable in spec.environment}


def build_source(config, identity=NO_IDENTITY, login=None):
    return EnvironmentSource(config=config, context=CONTEXT, identity=identity, login=login, tenant_id="sub-tenant")


def test_plain_operation_runs_image_as_is(config_factory, dummy_logger, dummy_console):
    launcher = InstanceLauncher(logger=dummy_logger, console=dummy_console)

    spec = launcher.build_spec(build_operation(), build_source(config_factory()))

    assert spec.name == "cnab-azure-test"
    assert spec.location == "eastus"
    assert spec.image == "example.azurecr.io/app:1.0"
    assert spec.cpu == 1.5
    assert spec.memory_gb == 1.0
    assert spec.command == ()
    assert spec.volumes == ()
    assert spec.restart_policy == "Never"
    assert spec.os_type == "Linux"
    assert environment_of(spec) == {"CNAB_ACTION": "install"}
    assert all(variable.secure for variable in spec.environment)


def test_files_add_secret_volume_and_extraction_script(config_factory, dummy_logger, dummy_console):
    launcher = InstanceLauncher(logger=dummy_logger, console=dummy_console)
    operation = build_operation(files={"/cnab/app/a.json": "{}", "/root/.kube/config": "kube"})

    spec = launcher.build_spec(operation, build_source(config_factory()))

    secret_volume = spec.volumes[0]
    assert isinstance(secret_volume, SecretVolume)
    assert len(secret_volume.secrets) == 4
    assert spec.volume_mounts[0].mount_path == "/mnt/BundleFiles"
    assert spec.command[:2] == ("/bin/sh", "-c")
    script = spec.command[2]
    assert "/mnt/BundleFiles/path1" in script
    assert "/mnt/BundleFiles/value1" in script
    assert 'mkdir -p "$(dirname "$target")"' in script
    assert script.splitlines()[-1] == "exec /cnab/app/run"


def test_outputs_link_state_share_into_bundle(config_factory, dummy_logger, dummy_console):
    launcher = InstanceLauncher(logger=dummy_logger, console=dummy_console)
    config = config_factory(
        state_fileshare="share",
        state_storage_account_name="acct",
        state_storage_account_key="key",
        state_mount_point="/mnt/state",
    )
    operation = build_operation(outputs={"url": "/cnab/app/outputs/url"})

    spec = launcher.build_spec(operation, build_source(config))

    assert isinstance(spec.volumes[0], FileShareVolume)
    assert spec.volumes[0].share_name == "share"
    assert spec.volume_mounts[0].mount_path == "/mnt/state"
    script = spec.command[2]
    assert "mkdir -p /mnt/state/hello/demo/outputs" in script
    assert "ln -s /mnt/state/hello/demo/outputs /cnab/app/outputs" in script


def test_debug_container_blocks_instead_of_running(config_factory, dummy_logger, dummy_console):
    launcher = InstanceLauncher(logger=dummy_logger, console=dummy_console)

    spec = launcher.build_spec(build_operation(), build_source(config_factory(debug_container=True)))

    assert spec.command[2].splitlines()[-1] == "tail -f /dev/null"


def test_image_is_pinned_to_content_digest(config_factory, dummy_logger, dummy_console):
    launcher = InstanceLauncher(logger=dummy_logger, console=dummy_console)
    digest = "sha256:" + "c" * 64
    operation = build_operation(image=InvocationImage(image="example.azurecr.io/app:1.0", digest=digest))

    spec = launcher.build_spec(operation, build_source(config_factory()))

    assert spec.image == f"example.azurecr.io/app@{digest}"


def test_unsupported_image_type_is_rejected(config_factory, dummy_logger, dummy_console):
    launcher = InstanceLauncher(logger=dummy_logger, console=dummy_console)
    operation = build_operation(image=InvocationImage(image="app.qcow2", image_type="qcow"))

    with pytest.raises(ConfigurationError, match="qcow"):
        launcher.build_spec(operation, build_source(config_factory()))


def test_service_principal_credentials_are_propagated(config_factory, dummy_logger, dummy_console):
    launcher = InstanceLauncher(logger=dummy_logger, console=dummy_console)
    config = config_factory(client_id="id", client_secret="secret", tenant_id="tenant", propagate_credentials=True)
    login = LoginInfo(credential=object(), login_type=LoginType.SERVICE_PRINCIPAL)

    environment = environment_of(launcher.build_spec(build_operation(), build_source(config, login=login)))

    assert environment["AZURE_SUBSCRIPTION_ID"] == SUBSCRIPTION
    assert environment["AZURE_TENANT_ID"] == "sub-tenant"
    assert environment["AZURE_CLIENT_ID"] == "id"
    assert environment["AZURE_CLIENT_SECRET"] == "secret"
    assert "AZURE_OAUTH_TOKEN" not in environment


def test_interactive_login_propagates_token(config_factory, dummy_logger, dummy_console):
    launcher = InstanceLauncher(logger=dummy_logger, console=dummy_console)
    login = LoginInfo(credential=object(), login_type=LoginType.CLI, token_provider=lambda: "cli-token")

    environment = environment_of(
        launcher.build_spec(build_operation(), build_source(config_factory(propagate_credentials=True), login=login))
    )

    assert environment["AZURE_OAUTH_TOKEN"] == "cli-token"
    assert "AZURE_CLIENT_SECRET" not in environment


def test_nothing_is_propagated_unless_requested(config_factory, dummy_logger, dummy_console):
    launcher = InstanceLauncher(logger=dummy_logger, console=dummy_console)
    login = LoginInfo(credential=object(), login_type=LoginType.CLI, token_provider=lambda: "cli-token")

    environment = environment_of(launcher.build_spec(build_operation(), build_source(config_factory(), login=login)))

    assert not any(name.startswith("AZURE_") for name in environment)


def test_managed_identity_suppresses_credentials(config_factory, dummy_logger, dummy_console):
    launcher = InstanceLauncher(logger=dummy_logger, console=dummy_console)
    resource = ResourceId(SUBSCRIPTION, "ids", "Microsoft.ManagedIdentity", "userAssignedIdentities", "mi", "/raw/id")
    config = config_factory(propagate_credentials=True, msi_type=IdentityMode.USER, user_msi_resource=resource)
    identity = IdentityDetails(
        mode=IdentityMode.USER,
        identity=ContainerIdentity(type="UserAssigned", user_assigned_ids=("/raw/id",)),
    )
    login = LoginInfo(credential=object(), login_type=LoginType.CLI, token_provider=lambda: "cli-token")

    spec = launcher.build_spec(build_operation(), build_source(config, identity=identity, login=login))
    environment = environment_of(spec)

    assert environment["AZURE_MSI_TYPE"] == "user"
    assert environment["AZURE_USER_MSI_RESOURCE_ID"] == "/raw/id"
    assert environment["AZURE_SUBSCRIPTION_ID"] == SUBSCRIPTION
    assert "AZURE_OAUTH_TOKEN" not in environment
    assert spec.identity.user_assigned_ids == ("/raw/id",)


def test_bundle_environment_overrides_propagated_values(config_factory, dummy_logger, dummy_console):
    launcher = InstanceLauncher(logger=dummy_logger, console=dummy_console)
    operation = build_operation(environment={"AZURE_SUBSCRIPTION_ID": "from-bundle"})

    environment = environment_of(
        launcher.build_spec(operation, build_source(config_factory(propagate_credentials=True)))
    )

    assert environment["AZURE_SUBSCRIPTION_ID"] == "from-bundle"


def test_explicit_registry_credentials(config_factory):
    config = config_factory(registry_username="user", registry_password="pass")

    credentials = InstanceLauncher.registry_credentials(config, "docker.example.com/app:1")

    assert credentials[0].server == "docker.example.com"
    assert credentials[0].username == "user"


def test_service_principal_registry_credentials_require_acr(config_factory):
    config = config_factory(
        registry_username="id",
        registry_password="secret",
        use_client_creds_for_registry=True,
    )

    assert InstanceLauncher.registry_credentials(config, "myacr.azurecr.io/app")[0].server == "myacr.azurecr.io"
    with pytest.raises(ConfigurationError, match="non Azure registry: docker.io"):
        InstanceLauncher.registry_credentials(config, "library/app")


def test_system_identity_launch_is_two_phase(config_factory, fake_cloud, dummy_logger, dummy_console):
    launcher = InstanceLauncher(logger=dummy_logger, console=dummy_console)
    config = config_factory(msi_type=IdentityMode.SYSTEM)
    spec = launcher.build_spec(build_operation(), build_source(config, identity=SYSTEM_IDENTITY))
    bound = []

    launcher.launch(fake_cloud, CONTEXT, spec, SYSTEM_IDENTITY, bind_role=bound.append)

    assert len(fake_cloud.container_groups) == 2
    placeholder = fake_cloud.container_groups[0][1]
    final = fake_cloud.container_groups[1][1]
    assert placeholder.image == "alpine:latest"
    assert placeholder.command == ()
    assert placeholder.identity.type == "SystemAssigned"
    assert final.image == "example.azurecr.io/app:1.0"
    assert final.name == placeholder.name
    assert bound == ["principal-1"]


def test_single_phase_launch_without_system_identity(config_factory, fake_cloud, dummy_logger, dummy_console):
    launcher = InstanceLauncher(logger=dummy_logger, console=dummy_console)
    spec = launcher.build_spec(build_operation(), build_source(config_factory()))
    bound = []

    launcher.launch(fake_cloud, CONTEXT, spec, NO_IDENTITY, bind_role=bound.append)

    assert len(fake_cloud.container_groups) == 1
    assert bound == []


def test_launch_phases_are_ordered():
    assert [phase.value for phase in LaunchPhase] == ["allocate_identity", "bind_role", "submit", "submitted"]


def test_preflight_returns_the_image_to_run(config_factory):
    digest = "sha256:" + "e" * 64
    operation = build_operation(image=InvocationImage(image="example.azurecr.io/app:1.0", digest=digest))

    assert InstanceLauncher.preflight(operation, config_factory()) == f"example.azurecr.io/app@{digest}"


def test_preflight_checks_registry_credentials(config_factory):
    config = config_factory(registry_username="id", registry_password="secret", use_client_creds_for_registry=True)

    with pytest.raises(ConfigurationError, match="non Azure registry"):
        InstanceLauncher.preflight(build_operation(image=InvocationImage(image="quay.io/app:1")), config)
