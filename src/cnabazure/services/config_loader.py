"""Configuration source loader for the CNAB Azure driver."""

from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from cnabazure.constants import DRIVER_ENV_VARS, ENV_PREFIX
from cnabazure.errors import ConfigurationError


class ConfigLoader:
    """Merges optional YAML defaults with the process environment."""

    SUPPORTED_KEYS = set(DRIVER_ENV_VARS)

    def load(self, config_path: Optional[str]) -> Dict[str, str]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigurationError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigurationError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(str(key) for key in unknown)
            raise ConfigurationError(f"Unknown configuration keys: {unknown_list}")

        return {key: self._to_env_string(value) for key, value in parsed.items()}

    def merge(self, defaults: Mapping[str, str], environ: Mapping[str, str]) -> Dict[str, str]:
        """Environment always wins over file defaults; empty values count as unset."""
        merged = dict(defaults)
        for key, value in environ.items():
            if key.startswith(ENV_PREFIX) and value == "" and key in merged:
                continue
            merged[key] = value
        return merged

    @staticmethod
    def _to_env_string(value) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)
