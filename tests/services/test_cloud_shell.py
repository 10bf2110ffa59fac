import json

import pytest

from cnabazure.errors import ConfigurationError
from cnabazure.services.cloud_shell import CloudShellDefaults

SUBSCRIPTION_ID = "11111111-2222-3333-4444-555555555555"
TENANT_ID = "99999999-8888-7777-6666-555555555555"
STORAGE_ACCOUNT_ID = (
    f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/cloud-shell-storage-westeurope"
    "/providers/Microsoft.Storage/storageAccounts/csshare"
)


def shell(tmp_path, **values):
    environ = {"ACC_CLOUD": "PROD", "AZURE_CONFIG_DIR": str(tmp_path)}
    environ.update(values)
    return CloudShellDefaults(environ)


def write_profile(tmp_path, subscriptions):
    # az writes the profile with a BOM
    (tmp_path / "azureProfile.json").write_text(
        json.dumps({"subscriptions": subscriptions}),
        encoding="utf-8-sig",
    )


def test_nothing_is_read_outside_cloud_shell(tmp_path):
    (tmp_path / "config").write_text("[defaults]\ngroup = rg\nlocation = eastus\n", encoding="utf-8")
    defaults = CloudShellDefaults({"AZURE_CONFIG_DIR": str(tmp_path), "ACC_LOCATION": "westeurope"})

    assert defaults.resource_group_and_location() == ("", "")
    assert defaults.default_subscription() == ("", "")
    assert defaults.cloud_drive() is None


def test_az_default_variables_come_first(tmp_path):
    (tmp_path / "config").write_text("[defaults]\ngroup = from-config\nlocation = northeurope\n", encoding="utf-8")
    defaults = shell(tmp_path, AZURE_DEFAULTS_GROUP="from-env", AZURE_DEFAULTS_LOCATION="eastus")

    assert defaults.resource_group_and_location() == ("from-env", "eastus")


def test_cli_config_fills_missing_defaults(tmp_path):
    (tmp_path / "config").write_text("[defaults]\ngroup = from-config\nlocation = northeurope\n", encoding="utf-8")
    defaults = shell(tmp_path, AZURE_DEFAULTS_GROUP="from-env")

    assert defaults.resource_group_and_location() == ("from-env", "northeurope")


def test_cloud_shell_location_is_the_last_resort(tmp_path):
    defaults = shell(tmp_path, ACC_LOCATION="West Europe")

    assert defaults.resource_group_and_location() == ("", "West Europe")


def test_cloud_shell_location_is_not_used_with_a_default_group(tmp_path):
    defaults = shell(tmp_path, AZURE_DEFAULTS_GROUP="rg", ACC_LOCATION="westeurope")

    assert defaults.resource_group_and_location() == ("rg", "")


def test_default_subscription_from_cli_profile(tmp_path):
    write_profile(
        tmp_path,
        [
            {"id": "other", "tenantId": "other-tenant", "environmentName": "AzureCloud", "isDefault": False},
            {"id": "china", "tenantId": "china-tenant", "environmentName": "AzureChinaCloud", "isDefault": True},
            {"id": SUBSCRIPTION_ID, "tenantId": TENANT_ID, "environmentName": "AzureCloud", "isDefault": True},
        ],
    )

    assert shell(tmp_path).default_subscription() == (SUBSCRIPTION_ID, TENANT_ID)


def test_unreadable_cli_profile_gives_no_default(tmp_path):
    (tmp_path / "azureProfile.json").write_text("{broken", encoding="utf-8")

    assert shell(tmp_path).default_subscription() == ("", "")


def test_cloud_drive_from_storage_profile(tmp_path):
    profile = json.dumps(
        {"storageAccountResourceId": STORAGE_ACCOUNT_ID, "fileShareName": "cs-user-share", "diskSizeInGB": 6}
    )

    drive = shell(tmp_path, ACC_STORAGE_PROFILE=profile).cloud_drive()

    assert drive.share_name == "cs-user-share"
    assert drive.storage_account.resource_name == "csshare"
    assert drive.storage_account.resource_group == "cloud-shell-storage-westeurope"


def test_malformed_storage_profile_is_rejected(tmp_path):
    with pytest.raises(ConfigurationError, match="ACC_STORAGE_PROFILE"):
        shell(tmp_path, ACC_STORAGE_PROFILE="not json").cloud_drive()


def test_storage_profile_with_bad_account_id_is_rejected(tmp_path):
    profile = json.dumps({"storageAccountResourceId": "csshare", "fileShareName": "share"})

    with pytest.raises(ConfigurationError, match="storageAccountResourceId"):
        shell(tmp_path, ACC_STORAGE_PROFILE=profile).cloud_drive()
