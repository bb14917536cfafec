"""YAML defaults for the dockdeploy CLI."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from dockdeploy.errors import DeployError

# key -> accepted Python types once YAML has parsed the value
_KEY_TYPES = {
    "repo_url": (str,),
    "branch": (str,),
    "ssh_user": (str,),
    "host": (str,),
    "ssh_key": (str,),
    "port": (int,),
    "verbose": (bool,),
    "log_file": (str,),
    "work_dir": (str,),
    "assume_yes": (bool,),
    "settle_seconds": (int, float),
    "command_timeout": (int, float),
    "connect_timeout": (int,),
}


class ConfigLoader:
    """Reads a YAML mapping of CLI defaults and rejects anything it does not know."""

    SUPPORTED_KEYS = frozenset(_KEY_TYPES)

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.is_file():
            raise DeployError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise DeployError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise DeployError("Config file must contain a YAML mapping at the root.")

        if "token" in parsed:
            raise DeployError(
                "Access tokens are not read from config files. "
                "Use --token or the DOCKDEPLOY_GIT_TOKEN environment variable."
            )

        unknown = sorted(str(key) for key in set(parsed) - self.SUPPORTED_KEYS)
        if unknown:
            raise DeployError(f"Unknown configuration keys: {', '.join(unknown)}")

        for key, value in parsed.items():
            self._check_type(key, value)
        return parsed

    @staticmethod
    def _check_type(key: str, value: Any):
        if value is None:
            return
        expected = _KEY_TYPES[key]
        # bool is an int subclass; `port: yes` must not pass as a number
        if isinstance(value, bool) and bool not in expected:
            raise DeployError(f"Configuration key '{key}' must be a number, got {value!r}")
        if not isinstance(value, expected):
            names = " or ".join(kind.__name__ for kind in expected)
            raise DeployError(f"Configuration key '{key}' must be of type {names}, got {value!r}")
