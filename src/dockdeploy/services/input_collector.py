"""Interactive (or injected) collection of the deployment parameters."""

import re
from typing import Any, Callable, Dict, Optional

import click

from dockdeploy.constants import DEFAULT_BRANCH, KEY_FILE_MODE
from dockdeploy.errors import DeployError, OperationCancelled
from dockdeploy.log import SUCCESS
from dockdeploy.models import DeploymentConfig

_DEPLOY_CONFIRMATION = re.compile(r"[Yy][Ee]?[Ss]?")


def is_deploy_confirmation(answer: str) -> bool:
    return bool(_DEPLOY_CONFIRMATION.fullmatch((answer or "").strip()))


def is_exact_yes(answer: str) -> bool:
    return (answer or "").strip().lower() == "yes"


class InputCollector:
    """Builds a DeploymentConfig, re-prompting until every field validates.

    Values found in ``presets`` are validated without prompting; an invalid
    preset is fatal because there is nobody to re-prompt.
    """

    def __init__(
        self,
        validation_service,
        logger,
        console,
        presets: Optional[Dict[str, Any]] = None,
        assume_yes: bool = False,
        prompt: Callable = click.prompt,
    ):
        self.validation = validation_service
        self.logger = logger
        self.console = console
        self.presets = {key: value for key, value in (presets or {}).items() if value is not None}
        self.assume_yes = assume_yes
        self.prompt = prompt

    def _ask(
        self,
        key: str,
        label: str,
        validator: Callable[[str], Any],
        default: Optional[str] = None,
        hide_input: bool = False,
    ):
        if key in self.presets:
            try:
                return validator(self.presets[key])
            except DeployError as exc:
                raise DeployError(f"Invalid value for {key}: {exc}") from exc

        while True:
            raw = self.prompt(label, default=default, hide_input=hide_input, show_default=default is not None)
            try:
                return validator(raw)
            except DeployError as exc:
                self.console.print(f"[red]{exc}[/red]")
                self.logger.error(str(exc))

    def collect(self) -> DeploymentConfig:
        repo_url = self._ask("repo_url", "Enter Git Repository URL (https://...)", self.validation.validate_url)
        self.logger.log(SUCCESS, "Valid repository URL provided")

        token = self._ask(
            "token",
            "Enter Personal Access Token (PAT)",
            self.validation.validate_token,
            hide_input=True,
        )
        self.logger.log(SUCCESS, "PAT received (hidden from logs)")

        branch = self._ask(
            "branch",
            "Enter branch name",
            self.validation.validate_branch,
            default=DEFAULT_BRANCH,
        )
        self.logger.info("Using branch: %s", branch)

        ssh_user = self._ask("ssh_user", "Enter SSH username", self.validation.validate_user)
        self.logger.log(SUCCESS, "SSH username: %s", ssh_user)

        host = self._ask("host", "Enter server IP address or hostname", self.validation.validate_host)
        self.logger.log(SUCCESS, "Valid server address: %s", host)

        ssh_key = self._ask(
            "ssh_key",
            "Enter SSH key path",
            lambda value: self.validation.validate_ssh_key(value, self.logger, KEY_FILE_MODE),
        )
        self.logger.log(SUCCESS, "SSH key validated: %s", ssh_key)

        port = self._ask("port", "Enter application port (1-65535)", self.validation.validate_port)
        self.logger.log(SUCCESS, "Application port: %s", port)

        project = self.validation.derive_project_name(repo_url)
        self.logger.info("Project name: %s", project)

        return DeploymentConfig(
            repo_url=repo_url,
            token=token,
            branch=branch,
            ssh_user=ssh_user,
            host=host,
            ssh_key=ssh_key,
            port=port,
            project=project,
        )

    def show_summary(self, config: DeploymentConfig):
        self.logger.info("Configuration Summary:")
        self.logger.info("  Repository: %s", config.repo_url)
        self.logger.info("  Branch: %s", config.branch)
        self.logger.info("  Server: %s", config.ssh_target)
        self.logger.info("  Port: %s", config.port)

    def confirm(self, config: DeploymentConfig, action: str = "deployment"):
        self.show_summary(config)
        if self.assume_yes:
            self.logger.info("Proceeding with %s (--yes)", action)
            return

        answer = self.prompt(f"Proceed with {action}? (yes/no)", default="", show_default=False)
        if not is_deploy_confirmation(answer):
            message = f"{action.capitalize()} cancelled by user"
            self.logger.warning(message)
            raise OperationCancelled(message)

    def confirm_teardown(self, config: DeploymentConfig):
        self.logger.warning("This will remove all deployed resources for %s", config.project)
        answer = self.prompt("Are you sure? (yes/no)", default="", show_default=False)
        if not is_exact_yes(answer):
            self.logger.info("Cleanup cancelled")
            raise OperationCancelled("Cleanup cancelled")
