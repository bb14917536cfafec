import logging
import os
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import click
import requests
from rich.console import Console

from .constants import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_ENDPOINT_DELAY_SECONDS,
    DEFAULT_SETTLE_SECONDS,
    SCRATCH_DIR_NAME,
)
from .errors import DeployError, OperationCancelled
from .log import SUCCESS, SecretFilter, attach_secret_filter, redact
from .models import DeploymentConfig, RunContext, StepOutcome
from .services.archive import ArchiveService
from .services.command_runner import CommandRunner
from .services.container_deployer import ContainerDeployerService
from .services.filesystem import FileSystemService
from .services.health import DeploymentValidatorService
from .services.input_collector import InputCollector
from .services.manifest import ManifestService
from .services.provisioner import ProvisionerService
from .services.proxy import ProxyConfiguratorService
from .services.remote import RemoteExecutor
from .services.remote_state import RemoteDeploymentState
from .services.source_sync import SourceSyncService, authenticated_url
from .services.teardown import TeardownService
from .services.validation import ValidationService

console = Console()
logger = logging.getLogger("dockdeploy")

MODE_DEPLOY = "deploy"
MODE_CLEANUP = "cleanup"


def default_log_file(work_dir: str, started_at: Optional[datetime] = None) -> str:
    stamp = (started_at or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return os.path.join(work_dir, f"deploy_{stamp}.log")


class Deployer:
    """Runs the deploy (or cleanup) workflow against one remote host."""

    def __init__(
        self,
        mode: str = MODE_DEPLOY,
        presets: Optional[Dict[str, Any]] = None,
        assume_yes: bool = False,
        work_dir: Optional[str] = None,
        log_file: Optional[str] = None,
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
        prompt: Callable = click.prompt,
        remote_factory: Optional[Callable] = None,
        state_factory: Optional[Callable] = None,
    ):
        if mode not in (MODE_DEPLOY, MODE_CLEANUP):
            raise DeployError(f"Unknown mode: {mode}")

        self.mode = mode
        self.work_dir = Path(work_dir or os.getcwd())
        self.log_file = log_file or default_log_file(str(self.work_dir))
        self.settle_seconds = settle_seconds
        self.command_timeout = command_timeout
        self.connect_timeout = connect_timeout

        self.run_context = RunContext(
            run_id=uuid.uuid4().hex[:10],
            mode=mode,
            log_file=self.log_file,
            work_dir=self.work_dir,
        )
        self.manifest_service = ManifestService(
            manifest_file=str(Path(self.log_file).with_suffix(".json")),
            logger=logger,
        )
        self.secret_filter = SecretFilter()
        attach_secret_filter(logger, self.secret_filter)

        self.validation_service = ValidationService()
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.archive_service = ArchiveService()
        self.command_runner = CommandRunner(logger=logger)
        self.input_collector = InputCollector(
            validation_service=self.validation_service,
            logger=logger,
            console=console,
            presets=presets,
            assume_yes=assume_yes,
            prompt=prompt,
        )
        self.source_sync_service = SourceSyncService(
            command_runner=self.command_runner,
            filesystem_service=self.filesystem_service,
            logger=logger,
            console=console,
        )
        self.provisioner_service = ProvisionerService(logger=logger, console=console)
        self.container_deployer_service = ContainerDeployerService(
            archive_service=self.archive_service,
            filesystem_service=self.filesystem_service,
            logger=logger,
            console=console,
        )
        self.proxy_service = ProxyConfiguratorService(logger=logger, console=console)
        self.validator_service = DeploymentValidatorService(
            logger=logger,
            console=console,
            requests_module=requests,
            endpoint_delay=DEFAULT_ENDPOINT_DELAY_SECONDS,
        )
        self.teardown_service = TeardownService(logger=logger, console=console)

        self.remote_factory = remote_factory or self._build_remote
        self.state_factory = state_factory or RemoteDeploymentState
        self.config: Optional[DeploymentConfig] = None
        self.remote = None
        self.state = None

    def _build_remote(self, config: DeploymentConfig) -> RemoteExecutor:
        return RemoteExecutor(
            config=config,
            command_runner=self.command_runner,
            logger=logger,
            command_timeout=self.command_timeout,
            connect_timeout=self.connect_timeout,
        )

    def _header(self, title: str):
        console.rule(f"[bold]{title}")
        logger.info("=== %s ===", title)

    def _run_step(self, name: str, title: str, callback, *args, **kwargs):
        self._header(title)
        outcome = StepOutcome(name=name)
        self.run_context.steps.append(outcome)
        self.manifest_service.step_started(name)

        try:
            result = callback(*args, **kwargs)
        except (OperationCancelled, KeyboardInterrupt, click.Abort):
            outcome.status = "cancelled"
            self.manifest_service.step_finished(name, "cancelled")
            raise
        except Exception as exc:
            outcome.status = "failed"
            outcome.error = self._redact(str(exc))
            self.manifest_service.step_finished(name, "failed", error=outcome.error)
            raise

        outcome.status = "success"
        self.manifest_service.step_finished(name, "success")
        return result

    def collect_input(self) -> DeploymentConfig:
        config = self.input_collector.collect()
        for secret in (authenticated_url(config.repo_url, config.token), config.token):
            self.secret_filter.add_secret(secret)
            self.command_runner.add_secret(secret)
        self.manifest_service.set_metadata(config.summary())

        action = "deployment" if self.mode == MODE_DEPLOY else "cleanup"
        self.input_collector.confirm(config, action=action)
        if self.mode == MODE_CLEANUP:
            self.input_collector.confirm_teardown(config)

        self.config = config
        self.remote = self.remote_factory(config)
        self.state = self.state_factory(self.remote, config, logger)
        return config

    def clone_repository(self):
        scratch_root = self.work_dir / SCRATCH_DIR_NAME
        self.run_context.source_dir = self.source_sync_service.sync(self.config, scratch_root)

    def verify_docker_config(self):
        kind, compose_file = self.container_deployer_service.detect_definition(self.run_context.source_dir)
        self.run_context.deploy_kind = kind
        self.run_context.compose_file = compose_file
        logger.info("Project structure verified")

    def test_ssh_connectivity(self):
        logger.info("Testing SSH connection to %s...", self.config.ssh_target)
        self.remote.check_connectivity()
        logger.log(SUCCESS, "SSH connection successful")

        logger.info("Verifying sudo access...")
        if self.remote.has_passwordless_sudo():
            logger.log(SUCCESS, "Passwordless sudo confirmed")
        else:
            message = "User may need sudo password. Ensure passwordless sudo is configured."
            logger.warning(message)
            self.run_context.record_warning(message)
            self.manifest_service.add_warning(message)

    def prepare_remote_environment(self):
        self.provisioner_service.provision(self.remote)

    def deploy_application(self):
        self.container_deployer_service.deploy(
            remote=self.remote,
            state=self.state,
            source_dir=self.run_context.source_dir,
            kind=self.run_context.deploy_kind,
            compose_file=self.run_context.compose_file,
            port=self.config.port,
            settle_seconds=self.settle_seconds,
        )

    def configure_nginx(self):
        self.proxy_service.configure(self.state, self.config.port)

    def validate_deployment(self):
        already_recorded = len(self.run_context.warnings)
        self.validator_service.validate(self.state, self.config, self.run_context)
        for message in self.run_context.warnings[already_recorded:]:
            self.manifest_service.add_warning(message)

    def remove_deployment(self):
        self.teardown_service.teardown(self.state)

    def _print_summary(self):
        config = self.config
        ssh_cmd = f"ssh -i {config.ssh_key} {config.ssh_target}"
        self._header("DEPLOYMENT SUCCESSFUL!")
        logger.log(SUCCESS, "Application deployed successfully!")
        logger.info("Access your application at: http://%s", config.host)
        logger.info("Container port: %s", config.port)
        logger.info("Project: %s", config.project)
        if self.run_context.warnings:
            logger.warning("Completed with %s warning(s):", len(self.run_context.warnings))
            for message in self.run_context.warnings:
                logger.warning("  %s", message)
        logger.info("Useful commands:")
        logger.info("  View logs: %s 'docker logs %s'", ssh_cmd, config.container_name)
        logger.info("  Restart: %s 'docker restart %s'", ssh_cmd, config.container_name)
        logger.info("  Cleanup: dockdeploy --cleanup")
        logger.info("Deployment log saved to: %s", self.log_file)

    def _run_deploy(self):
        self._run_step("clone_repository", "STEP 2: Cloning/Updating Repository", self.clone_repository)
        self._run_step("verify_docker_config", "STEP 3: Verifying Docker Configuration", self.verify_docker_config)
        self._run_step("test_ssh_connectivity", "STEP 4: Testing SSH Connectivity", self.test_ssh_connectivity)
        self._run_step(
            "prepare_remote_environment",
            "STEP 5: Preparing Remote Environment",
            self.prepare_remote_environment,
        )
        self._run_step("deploy_application", "STEP 6: Deploying Dockerized Application", self.deploy_application)
        self._run_step("configure_nginx", "STEP 7: Configuring Nginx Reverse Proxy", self.configure_nginx)
        self._run_step("validate_deployment", "STEP 8: Validating Deployment", self.validate_deployment)
        self._print_summary()

    def _run_cleanup(self):
        self._run_step("test_ssh_connectivity", "Testing SSH Connectivity", self.test_ssh_connectivity)
        self._run_step("remove_deployment", "CLEANUP MODE: Removing Deployed Resources", self.remove_deployment)

    def run(self) -> int:
        exit_code = 1
        manifest_status = "failed"
        manifest_error: Optional[str] = None

        try:
            logger.info("Starting %s process...", "deployment" if self.mode == MODE_DEPLOY else "cleanup")
            logger.info("Log file: %s", self.log_file)
            self.manifest_service.start_run(self.run_context.run_id, self.mode, self.log_file)

            self._run_step("collect_input", "STEP 1: Collecting Deployment Parameters", self.collect_input)

            if self.mode == MODE_CLEANUP:
                self._run_cleanup()
            else:
                self._run_deploy()

            manifest_status = "success"
            exit_code = 0
            return exit_code

        except OperationCancelled as exc:
            console.print(f"[yellow]{exc}[/yellow]")
            manifest_status = "cancelled"
            manifest_error = str(exc)
            exit_code = 0
            return exit_code
        except (KeyboardInterrupt, click.Abort):
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            manifest_status = "aborted"
            manifest_error = "Operation cancelled by user."
            exit_code = 1
            return exit_code
        except DeployError as exc:
            console.print(f"[bold red]Error:[/bold red] {self._redact(str(exc))}")
            logger.error(str(exc))
            self._report_failure()
            manifest_error = self._redact(str(exc))
            exit_code = 1
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {self._redact(str(exc))}")
            logger.exception("Unexpected error")
            self._report_failure()
            manifest_error = self._redact(str(exc))
            exit_code = 1
            return exit_code
        finally:
            self.manifest_service.finalize(manifest_status, error=manifest_error)

    def _redact(self, text: str) -> str:
        return redact(text, self.secret_filter.secrets)

    def _report_failure(self):
        failed_step = self.run_context.failed_step or "run"
        logger.error("Step '%s' failed. Check %s for details", failed_step, self.log_file)
