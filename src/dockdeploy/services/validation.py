"""Operator input validation for dockdeploy."""

import ipaddress
import os
import re
import stat
from pathlib import Path
from urllib.parse import urlparse

from dockdeploy.errors import DeployError

_HOSTNAME_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")
_DOTTED_NUMERIC = re.compile(r"^[0-9.]+$")
_BRANCH_FORBIDDEN = re.compile(r"(\.\.|[\s~^:?*\[\\]|@\{|//)")


class ValidationService:
    """Validates each DeploymentConfig field; every check raises DeployError."""

    def validate_url(self, value: str) -> str:
        url = (value or "").strip()
        if not url.startswith(("http://", "https://")):
            raise DeployError("Invalid URL format. Must start with http:// or https://")
        if not urlparse(url).netloc:
            raise DeployError("Invalid URL format. The repository host is missing.")
        self.derive_project_name(url)
        return url

    def validate_token(self, value: str) -> str:
        token = (value or "").strip()
        if not token:
            raise DeployError("Access token cannot be empty")
        return token

    def validate_branch(self, value: str) -> str:
        branch = (value or "").strip()
        if not branch:
            raise DeployError("Branch name cannot be empty")
        if branch.startswith(("-", "/")) or branch.endswith((".", "/", ".lock")) or _BRANCH_FORBIDDEN.search(branch):
            raise DeployError(f"Invalid branch name: {branch}")
        return branch

    def validate_user(self, value: str) -> str:
        user = (value or "").strip()
        if not user:
            raise DeployError("Username cannot be empty")
        if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_.-]*\$?", user):
            raise DeployError(f"Invalid SSH username: {user}")
        return user

    def validate_host(self, value: str) -> str:
        host = (value or "").strip()
        if not host:
            raise DeployError("Server address cannot be empty")

        try:
            ipaddress.ip_address(host.strip("[]"))
            return host.strip("[]")
        except ValueError:
            pass

        if _DOTTED_NUMERIC.match(host):
            raise DeployError(f"Invalid IP address: {host}")

        name = host[:-1] if host.endswith(".") else host
        labels = name.split(".")
        if len(name) > 253 or not all(_HOSTNAME_LABEL.match(label) for label in labels):
            raise DeployError(f"Invalid server address: {host}")
        if labels[-1].isdigit():
            raise DeployError(f"Invalid server address: {host}")
        return host

    def validate_port(self, value) -> int:
        text = str(value).strip()
        if not text.isdigit():
            raise DeployError(f"Invalid port number: {value}")
        port = int(text)
        if port < 1 or port > 65535:
            raise DeployError(f"Port must be between 1 and 65535, got {port}")
        return port

    def validate_ssh_key(self, value: str, logger=None, key_mode: int = 0o600) -> str:
        key_path = Path(os.path.expanduser((value or "").strip()))
        if not str(value or "").strip() or not key_path.is_file():
            raise DeployError(f"SSH key not found at: {key_path}")

        mode = stat.S_IMODE(key_path.stat().st_mode)
        if mode & ~0o600:
            if logger is not None:
                logger.warning("SSH key permissions are %o, setting to %o", mode, key_mode)
            try:
                os.chmod(key_path, key_mode)
            except OSError as exc:
                raise DeployError(f"Could not restrict permissions on {key_path}: {exc}") from exc
        return str(key_path)

    def derive_project_name(self, repo_url: str) -> str:
        path = urlparse(repo_url.strip()).path.rstrip("/")
        name = path.rsplit("/", 1)[-1]
        if name.lower().endswith(".git"):
            name = name[:-4]

        name = name.lower()
        name = re.sub(r"[^a-z0-9_.-]+", "-", name)
        name = re.sub(r"([_.-])[_.-]+", r"\1", name)
        name = name.strip("_.-")
        if not name:
            raise DeployError(f"Could not derive a project name from repository URL: {repo_url}")
        return name
