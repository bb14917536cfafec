"""SSH transport: the one capability every remote step goes through."""

import shlex
import subprocess
from dataclasses import dataclass
from typing import List, Optional

from dockdeploy.errors import CommandTimeout, DeployError
from dockdeploy.errors_catalog import actionable_error

SUCCESS = "success"
TIMEOUT = "timeout"
REMOTE_ERROR = "remote_error"

SSH_OPTIONS = ("-o", "StrictHostKeyChecking=no", "-o", "BatchMode=yes")


@dataclass
class RemoteResult:
    status: str
    returncode: Optional[int]
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS

    @property
    def output(self) -> str:
        return (self.stdout or "").strip()

    def describe(self) -> str:
        if self.status == TIMEOUT:
            return "timed out"
        detail = (self.stderr or self.stdout or "").strip()
        text = f"exit code {self.returncode}"
        return f"{text}: {detail}" if detail else text


def ssh_failure_hint(error_text: str) -> str:
    lowered = error_text.lower()
    if "no route to host" in lowered:
        return "No route to host. Check network reachability of the server."
    if "connection timed out" in lowered or "timed out" in lowered:
        return "SSH timed out. Verify the server is online and port 22 is reachable."
    if "connection refused" in lowered:
        return "SSH connection refused. Confirm the SSH daemon is running and port 22 is open."
    if "permission denied" in lowered:
        return "SSH authentication failed. Verify the key is authorized for this user."
    if "could not resolve hostname" in lowered:
        return "Host resolution failed. Check the server address for typos/DNS issues."
    return ""


class RemoteExecutor:
    """Runs commands and scripts on one host over the system OpenSSH client."""

    def __init__(
        self,
        config,
        command_runner,
        logger,
        command_timeout: Optional[float] = None,
        connect_timeout: int = 10,
    ):
        self.config = config
        self.command_runner = command_runner
        self.logger = logger
        self.command_timeout = command_timeout
        self.connect_timeout = connect_timeout

    def _ssh_base(self) -> List[str]:
        return ["ssh", "-i", self.config.ssh_key, *SSH_OPTIONS]

    def _ssh_transport(self) -> str:
        return " ".join(["ssh", "-i", shlex.quote(self.config.ssh_key), *SSH_OPTIONS])

    def build_ssh_cmd(self, remote_command: str, connect_timeout: Optional[int] = None) -> List[str]:
        cmd = self._ssh_base()
        if connect_timeout is not None:
            cmd += ["-o", f"ConnectTimeout={connect_timeout}"]
        return cmd + [self.config.ssh_target, remote_command]

    def _execute(self, cmd: List[str], input_text: Optional[str], timeout: Optional[float]) -> RemoteResult:
        try:
            completed = self.command_runner.run(
                cmd,
                check=False,
                capture_output=True,
                timeout=timeout if timeout is not None else self.command_timeout,
                input_text=input_text,
            )
        except CommandTimeout as exc:
            return RemoteResult(status=TIMEOUT, returncode=None, stderr=str(exc))
        return self._to_result(completed)

    @staticmethod
    def _to_result(completed: subprocess.CompletedProcess) -> RemoteResult:
        status = SUCCESS if completed.returncode == 0 else REMOTE_ERROR
        return RemoteResult(
            status=status,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

    def _checked(self, result: RemoteResult, action: str, check: bool) -> RemoteResult:
        if check and not result.ok:
            raise DeployError(f"{action} failed on {self.config.host} ({result.describe()}).")
        return result

    def run(
        self,
        command: str,
        check: bool = True,
        input_text: Optional[str] = None,
        timeout: Optional[float] = None,
        action: Optional[str] = None,
    ) -> RemoteResult:
        result = self._execute(self.build_ssh_cmd(command), input_text, timeout)
        return self._checked(result, action or f"Remote command `{command}`", check)

    def run_script(
        self,
        script: str,
        check: bool = True,
        timeout: Optional[float] = None,
        action: str = "Remote script",
    ) -> RemoteResult:
        result = self.run("bash -se", check=False, input_text=script, timeout=timeout)
        for line in result.output.splitlines():
            self.logger.info("[remote] %s", line)
        return self._checked(result, action, check)

    def check_connectivity(self):
        cmd = self.build_ssh_cmd("exit", connect_timeout=self.connect_timeout)
        result = self._execute(cmd, None, timeout=self.connect_timeout + 5)
        if not result.ok:
            hint = ssh_failure_hint(result.describe())
            message = actionable_error("ssh_unreachable", target=self.config.ssh_target)
            if hint:
                message = f"{message} {hint}"
            raise DeployError(message)

    def has_passwordless_sudo(self) -> bool:
        return self.run("sudo -n true", check=False).ok

    def write_file(self, path: str, content: str, sudo: bool = True):
        prefix = "sudo " if sudo else ""
        self.run(
            f"{prefix}tee {shlex.quote(path)} > /dev/null",
            input_text=content,
            action=f"Writing {path}",
        )

    def upload_tree_rsync(self, local_dir: str, remote_dir: str, excludes) -> RemoteResult:
        cmd = ["rsync", "-az", "--delete", "-e", self._ssh_transport()]
        for pattern in excludes:
            cmd += ["--exclude", pattern]
        cmd += [local_dir.rstrip("/") + "/", f"{self.config.copy_target}:{remote_dir}/"]
        try:
            return self._execute(cmd, None, None)
        except DeployError as exc:
            return RemoteResult(status=REMOTE_ERROR, returncode=None, stderr=str(exc))

    def upload_file_scp(self, local_path: str, remote_path: str) -> RemoteResult:
        cmd = ["scp", "-i", self.config.ssh_key, *SSH_OPTIONS]
        cmd += [local_path, f"{self.config.copy_target}:{remote_path}"]
        return self._checked(self._execute(cmd, None, None), f"Uploading {local_path}", True)
