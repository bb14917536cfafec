"""Subprocess execution service for dockdeploy."""

import os
import subprocess
from typing import Dict, Iterable, List, Optional

from dockdeploy.errors import CommandTimeout, DeployError
from dockdeploy.log import redact


class CommandRunner:
    """Runs local commands with consistent error handling and secret redaction."""

    def __init__(self, logger, default_timeout: Optional[float] = None, secrets: Iterable[str] = ()):
        self.logger = logger
        self.default_timeout = default_timeout
        self.secrets: List[str] = [secret for secret in secrets if secret]

    def add_secret(self, secret: str):
        if secret and secret not in self.secrets:
            self.secrets.append(secret)
            self.secrets.sort(key=len, reverse=True)

    def _clean(self, text: str) -> str:
        return redact(text, self.secrets)

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        input_text: Optional[str] = None,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = self._clean(" ".join(cmd))
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                timeout=effective_timeout,
                input=input_text,
                cwd=cwd,
                env={**os.environ, **env} if env else None,
            )
        except FileNotFoundError as exc:
            raise DeployError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise CommandTimeout(f"Command timed out after {effective_timeout}s: {cmd_str}") from exc
        except Exception as exc:
            raise DeployError(self._clean(f"Failed to execute command: {cmd_str}. {exc}")) from exc

        if capture_output:
            result.stdout = self._clean(result.stdout or "")
            result.stderr = self._clean(result.stderr or "")
            if result.stdout:
                self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise DeployError(message)

        self.logger.debug(message)
        return result
