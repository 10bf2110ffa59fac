"""Driver configuration validation for the CNAB Azure driver."""

import uuid
from pathlib import PurePosixPath
from typing import Mapping, Sequence

from cnabazure.constants import (
    DEFAULT_MSI_AUDIENCE,
    DEFAULT_STATE_MOUNT_POINT,
    DEFAULT_SYSTEM_MSI_ROLE,
    ENV_APP_ID,
    ENV_CLIENT_ID,
    ENV_CLIENT_SECRET,
    ENV_DEBUG_CONTAINER,
    ENV_DELETE_OUTPUTS_FROM_FILESHARE,
    ENV_DELETE_RESOURCES,
    ENV_LOCATION,
    ENV_MSI_AUDIENCE,
    ENV_MSI_TYPE,
    ENV_NAME,
    ENV_PROPAGATE_CREDENTIALS,
    ENV_REGISTRY_PASSWORD,
    ENV_REGISTRY_USERNAME,
    ENV_RESOURCE_GROUP,
    ENV_STATE_FILESHARE,
    ENV_STATE_MOUNT_POINT,
    ENV_STATE_STORAGE_ACCOUNT_KEY,
    ENV_STATE_STORAGE_ACCOUNT_NAME,
    ENV_SUBSCRIPTION_ID,
    ENV_SYSTEM_MSI_ROLE,
    ENV_SYSTEM_MSI_SCOPE,
    ENV_TENANT_ID,
    ENV_USE_CLIENT_CREDS_FOR_REGISTRY_AUTH,
    ENV_USER_MSI_RESOURCE_ID,
    ENV_VERBOSE,
    NAME_PREFIX,
    USER_MSI_PROVIDER,
    USER_MSI_RESOURCE_TYPE,
)
from cnabazure.errors import ConfigurationError
from cnabazure.errors_catalog import actionable_error
from cnabazure.models import DriverConfig, IdentityMode
from cnabazure.services.cloud_shell import CloudShellDefaults
from cnabazure.services.provisioner import normalize_location
from cnabazure.services.resource_id import parse_resource_id, validate_scope

CLIENT_CREDENTIAL_GROUP = (ENV_CLIENT_ID, ENV_CLIENT_SECRET)
REGISTRY_CREDENTIAL_GROUP = (ENV_REGISTRY_USERNAME, ENV_REGISTRY_PASSWORD)
STATE_STORE_GROUP = (
    ENV_STATE_FILESHARE,
    ENV_STATE_STORAGE_ACCOUNT_NAME,
    ENV_STATE_STORAGE_ACCOUNT_KEY,
)
# passed through as given, surrounding whitespace included
SECRET_VARIABLES = frozenset(
    (ENV_CLIENT_SECRET, ENV_REGISTRY_PASSWORD, ENV_STATE_STORAGE_ACCOUNT_KEY)
)


class ConfigValidator:
    """Turns a flat string map into a validated, immutable DriverConfig."""

    def __init__(self, cloud_shell_factory=CloudShellDefaults):
        self.cloud_shell_factory = cloud_shell_factory

    def validate(self, env: Mapping[str, str]) -> DriverConfig:
        values = {
            key: (value or "") if key in SECRET_VARIABLES else (value or "").strip()
            for key, value in env.items()
        }

        def get(key: str) -> str:
            return values.get(key, "")

        cloud_shell = self.cloud_shell_factory(values)

        resource_group = get(ENV_RESOURCE_GROUP)
        location = get(ENV_LOCATION)
        if not resource_group and not location:
            resource_group, location = cloud_shell.resource_group_and_location()
        location = normalize_location(location)
        if not resource_group and not location:
            raise ConfigurationError(actionable_error("missing_rg_or_location"))

        self.check_all_or_none(values, CLIENT_CREDENTIAL_GROUP)
        client_id = get(ENV_CLIENT_ID)
        client_secret = get(ENV_CLIENT_SECRET)
        app_id = get(ENV_APP_ID)
        tenant_id = get(ENV_TENANT_ID)
        has_client_credentials = bool(client_id and client_secret)

        if has_client_credentials and app_id:
            raise ConfigurationError(
                f"either {ENV_CLIENT_ID} and {ENV_CLIENT_SECRET} or {ENV_APP_ID} "
                "should be set not both"
            )

        identity_requested = has_client_credentials or bool(app_id)
        if identity_requested and not tenant_id:
            raise ConfigurationError(
                f"{ENV_TENANT_ID} should be set when {ENV_CLIENT_ID} and {ENV_CLIENT_SECRET} "
                f"or {ENV_APP_ID} are set"
            )
        if tenant_id and not identity_requested:
            raise ConfigurationError(
                f"{ENV_TENANT_ID} should not be set when {ENV_CLIENT_ID} and "
                f"{ENV_CLIENT_SECRET} or {ENV_APP_ID} are not set"
            )

        self.check_all_or_none(values, REGISTRY_CREDENTIAL_GROUP)
        registry_username = get(ENV_REGISTRY_USERNAME)
        registry_password = get(ENV_REGISTRY_PASSWORD)

        use_client_creds_for_registry = self.is_true(get(ENV_USE_CLIENT_CREDS_FOR_REGISTRY_AUTH))
        if use_client_creds_for_registry:
            if registry_username or registry_password:
                raise ConfigurationError(
                    f"{ENV_USE_CLIENT_CREDS_FOR_REGISTRY_AUTH} should not be set if "
                    f"{ENV_REGISTRY_USERNAME} and {ENV_REGISTRY_PASSWORD} are set"
                )
            if not has_client_credentials:
                raise ConfigurationError(
                    f"Both {ENV_CLIENT_ID} and {ENV_CLIENT_SECRET} should be set when setting "
                    f"{ENV_USE_CLIENT_CREDS_FOR_REGISTRY_AUTH}"
                )

        self.check_all_or_none(values, STATE_STORE_GROUP)
        cloud_drive = None
        if not get(ENV_STATE_FILESHARE):
            cloud_drive = cloud_shell.cloud_drive()

        state_mount_point = self.validate_mount_point(get(ENV_STATE_MOUNT_POINT))

        msi_type, user_msi_resource = self.validate_identity(
            get(ENV_MSI_TYPE),
            get(ENV_USER_MSI_RESOURCE_ID),
        )

        system_msi_scope = get(ENV_SYSTEM_MSI_SCOPE)
        if system_msi_scope:
            try:
                validate_scope(system_msi_scope)
            except ValueError as exc:
                raise ConfigurationError(
                    f"{ENV_SYSTEM_MSI_SCOPE} environment variable is invalid: {exc}"
                ) from exc

        subscription_id = get(ENV_SUBSCRIPTION_ID)
        profile_tenant_id = ""
        if not subscription_id:
            subscription_id, profile_tenant_id = cloud_shell.default_subscription()

        create_resource_group = not resource_group
        if create_resource_group:
            resource_group = f"{NAME_PREFIX}-{uuid.uuid4()}"

        return DriverConfig(
            location=location,
            resource_group=resource_group,
            create_resource_group=create_resource_group,
            instance_name=get(ENV_NAME) or f"{NAME_PREFIX}-{uuid.uuid4()}",
            verbose=self.is_true(get(ENV_VERBOSE)),
            client_id=client_id,
            client_secret=client_secret,
            tenant_id=tenant_id,
            app_id=app_id,
            subscription_id=subscription_id,
            delete_resources=not self.is_false(get(ENV_DELETE_RESOURCES)),
            msi_type=msi_type,
            system_msi_role=get(ENV_SYSTEM_MSI_ROLE) or DEFAULT_SYSTEM_MSI_ROLE,
            system_msi_scope=system_msi_scope,
            user_msi_resource=user_msi_resource,
            propagate_credentials=self.is_true(get(ENV_PROPAGATE_CREDENTIALS)),
            use_client_creds_for_registry=use_client_creds_for_registry,
            registry_username=client_id if use_client_creds_for_registry else registry_username,
            registry_password=client_secret if use_client_creds_for_registry else registry_password,
            state_fileshare=get(ENV_STATE_FILESHARE),
            state_storage_account_name=get(ENV_STATE_STORAGE_ACCOUNT_NAME),
            state_storage_account_key=get(ENV_STATE_STORAGE_ACCOUNT_KEY),
            state_mount_point=state_mount_point,
            delete_outputs_from_fileshare=not self.is_false(get(ENV_DELETE_OUTPUTS_FROM_FILESHARE)),
            debug_container=self.is_true(get(ENV_DEBUG_CONTAINER)),
            msi_audience=get(ENV_MSI_AUDIENCE) or DEFAULT_MSI_AUDIENCE,
            in_cloud_shell=bool(get("ACC_CLOUD")),
            msi_endpoint=get("MSI_ENDPOINT"),
            profile_tenant_id=profile_tenant_id,
            cloud_drive=cloud_drive,
        )

    @staticmethod
    def is_true(value: str) -> bool:
        return value.lower() == "true"

    @staticmethod
    def is_false(value: str) -> bool:
        return value.lower() == "false"

    @staticmethod
    def check_all_or_none(values: Mapping[str, str], group: Sequence[str]):
        missing = [key for key in group if not values.get(key)]
        if missing and len(missing) != len(group):
            raise ConfigurationError(
                f"All of {','.join(group)} must be set when one is set. {missing[0]} is not set"
            )

    @staticmethod
    def validate_mount_point(mount_point: str) -> str:
        if not mount_point:
            return DEFAULT_STATE_MOUNT_POINT

        path = PurePosixPath(mount_point)
        if not path.is_absolute():
            raise ConfigurationError(
                f"value ({mount_point}) of {ENV_STATE_MOUNT_POINT} is not an absolute path"
            )
        if str(path) == "/":
            raise ConfigurationError(
                f"value ({mount_point}) of {ENV_STATE_MOUNT_POINT} should not be the root path"
            )
        return str(path)

    @staticmethod
    def validate_identity(msi_type: str, user_msi_resource_id: str):
        if not msi_type:
            return IdentityMode.NONE, None

        mode = msi_type.lower()
        if mode == IdentityMode.SYSTEM.value:
            return IdentityMode.SYSTEM, None

        if mode != IdentityMode.USER.value:
            raise ConfigurationError(f"{ENV_MSI_TYPE} environment variable unknown value: {msi_type}")

        if not user_msi_resource_id:
            raise ConfigurationError(
                f"Driver requires {ENV_USER_MSI_RESOURCE_ID} environment variable when "
                f"{ENV_MSI_TYPE} is set to user"
            )

        try:
            resource = parse_resource_id(user_msi_resource_id)
        except ValueError as exc:
            raise ConfigurationError(
                f"{ENV_USER_MSI_RESOURCE_ID} environment variable parsing error: {exc}"
            ) from exc

        if (
            resource.provider.lower() != USER_MSI_PROVIDER.lower()
            or resource.resource_type.lower() != USER_MSI_RESOURCE_TYPE.lower()
        ):
            raise ConfigurationError(
                f"{ENV_USER_MSI_RESOURCE_ID} environment variable RP type should be "
                f"{USER_MSI_PROVIDER}/{USER_MSI_RESOURCE_TYPE} got: "
                f"{resource.provider}/{resource.resource_type}"
            )

        return IdentityMode.USER, resource
