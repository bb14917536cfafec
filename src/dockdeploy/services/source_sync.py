"""Local working copy management for the repository being deployed."""

from pathlib import Path
from typing import List
from urllib.parse import quote, urlparse, urlunparse

from dockdeploy.errors import DeployError
from dockdeploy.errors_catalog import actionable_error
from dockdeploy.log import SUCCESS

GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}


def authenticated_url(repo_url: str, token: str) -> str:
    """Weave the access token into the clone URL as userinfo."""
    parsed = urlparse(repo_url)
    netloc = parsed.netloc.rsplit("@", 1)[-1]
    return urlunparse(parsed._replace(netloc=f"{quote(token, safe='')}@{netloc}"))


class SourceSyncService:
    """Clones the requested branch, or fast-forwards an existing working copy."""

    def __init__(self, command_runner, filesystem_service, logger, console):
        self.command_runner = command_runner
        self.filesystem = filesystem_service
        self.logger = logger
        self.console = console

    def _git(self, args: List[str], cwd: Path = None):
        cmd = ["git"] + (["-C", str(cwd)] if cwd else []) + args
        result = self.command_runner.run(cmd, check=True, capture_output=True, env=GIT_ENV)
        for line in ((result.stdout or "") + (result.stderr or "")).splitlines():
            if line.strip():
                self.logger.info("[git] %s", line.strip())
        return result

    def sync(self, config, scratch_root: Path) -> Path:
        target = scratch_root / config.project
        auth_url = authenticated_url(config.repo_url, config.token)
        self.command_runner.add_secret(auth_url)
        self.command_runner.add_secret(quote(config.token, safe=""))
        self.command_runner.add_secret(config.token)

        self.filesystem.ensure_dir(scratch_root)
        try:
            if (target / ".git").is_dir():
                self.logger.info("Repository already exists, pulling latest changes...")
                self._update(target, config.branch, auth_url)
                self.logger.log(SUCCESS, "Repository updated successfully")
            else:
                if target.exists():
                    self.logger.warning("%s is not a git working copy, re-cloning", target)
                    self.filesystem.cleanup_dir(str(target))
                self.logger.info("Cloning repository...")
                self._clone(target, config, auth_url)
                self.logger.log(SUCCESS, "Repository cloned successfully")

            commit = self._git(["rev-parse", "--short", "HEAD"], cwd=target).stdout.strip()
        except DeployError as exc:
            message = actionable_error("git_sync_failed", branch=config.branch, path=str(target))
            raise DeployError(f"{message}\n{exc}") from exc

        self.logger.info("Current commit: %s", commit)
        return target

    def _clone(self, target: Path, config, auth_url: str):
        self._git(["clone", "-b", config.branch, auth_url, str(target)])
        # Keep the token out of .git/config; updates pass it on the command line only.
        self._git(["remote", "set-url", "origin", config.repo_url], cwd=target)

    def _update(self, target: Path, branch: str, auth_url: str):
        self._git(
            ["fetch", auth_url, f"+refs/heads/{branch}:refs/remotes/origin/{branch}"],
            cwd=target,
        )
        self._git(["checkout", branch], cwd=target)
        self._git(["merge", "--ff-only", f"origin/{branch}"], cwd=target)
