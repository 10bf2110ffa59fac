"""Defaults taken from an Azure Cloud Shell session."""

import configparser
import json
import os
from pathlib import Path
from typing import Mapping, Optional, Tuple

from cnabazure.errors import ConfigurationError
from cnabazure.models import CloudDrive
from cnabazure.services.resource_id import parse_resource_id

CLI_CONFIG_FILE = "config"
CLI_PROFILE_FILE = "azureProfile.json"
PUBLIC_CLOUD = "azurecloud"


class CloudShellDefaults:
    """Reads the az CLI settings and ACC_* variables of a Cloud Shell session.

    Every lookup returns empty values outside Cloud Shell, and a missing or
    unreadable CLI file counts as "no default".
    """

    def __init__(self, environ: Mapping[str, str]):
        self.environ = environ

    @property
    def active(self) -> bool:
        return bool(self.environ.get("ACC_CLOUD"))

    def cli_directory(self) -> Path:
        configured = self.environ.get("AZURE_CONFIG_DIR")
        if configured:
            return Path(configured)
        return Path(os.path.expanduser("~")) / ".azure"

    def resource_group_and_location(self) -> Tuple[str, str]:
        """Resource group and location from az defaults, falling back to ACC_LOCATION."""
        if not self.active:
            return "", ""

        resource_group = self.environ.get("AZURE_DEFAULTS_GROUP", "")
        location = self.environ.get("AZURE_DEFAULTS_LOCATION", "")
        if not resource_group or not location:
            config_group, config_location = self._cli_config_defaults()
            resource_group = resource_group or config_group
            location = location or config_location

        if not resource_group and not location:
            location = self.environ.get("ACC_LOCATION", "")
        return resource_group, location

    def _cli_config_defaults(self) -> Tuple[str, str]:
        path = self.cli_directory() / CLI_CONFIG_FILE
        if not path.exists():
            return "", ""

        parser = configparser.ConfigParser()
        try:
            parser.read(path, encoding="utf-8")
        except configparser.Error:
            return "", ""
        return (
            parser.get("defaults", "group", fallback=""),
            parser.get("defaults", "location", fallback=""),
        )

    def default_subscription(self) -> Tuple[str, str]:
        """Subscription and tenant ids of the default public cloud subscription in the CLI profile."""
        if not self.active:
            return "", ""

        path = self.cli_directory() / CLI_PROFILE_FILE
        if not path.exists():
            return "", ""

        try:
            # az writes the profile with a BOM
            profile = json.loads(path.read_text(encoding="utf-8-sig"))
        except (OSError, ValueError):
            return "", ""
        if not isinstance(profile, dict):
            return "", ""

        for subscription in profile.get("subscriptions") or []:
            environment = str(subscription.get("environmentName", "")).lower()
            if environment == PUBLIC_CLOUD and subscription.get("isDefault"):
                return subscription.get("id", ""), subscription.get("tenantId", "")
        return "", ""

    def cloud_drive(self) -> Optional[CloudDrive]:
        if not self.active:
            return None

        raw_profile = self.environ.get("ACC_STORAGE_PROFILE", "")
        if not raw_profile:
            return None

        try:
            profile = json.loads(raw_profile)
        except ValueError as exc:
            raise ConfigurationError(f"failed to parse ACC_STORAGE_PROFILE: {exc}") from exc
        if not isinstance(profile, dict):
            raise ConfigurationError("failed to parse ACC_STORAGE_PROFILE: expected a JSON object")

        share_name = profile.get("fileShareName", "")
        if not share_name:
            raise ConfigurationError("ACC_STORAGE_PROFILE has no fileShareName")

        try:
            storage_account = parse_resource_id(profile.get("storageAccountResourceId", ""))
        except ValueError as exc:
            raise ConfigurationError(f"ACC_STORAGE_PROFILE storageAccountResourceId is invalid: {exc}") from exc

        return CloudDrive(share_name=share_name, storage_account=storage_account)
