"""Post-deployment checks: service states are fatal, endpoint probes advisory."""

import time

import requests

from dockdeploy.constants import DOCKER_SERVICE, PROXY_SERVICE
from dockdeploy.errors import DeployError
from dockdeploy.errors_catalog import actionable_error
from dockdeploy.log import SUCCESS

from .container_deployer import KIND_COMPOSE


class DeploymentValidatorService:
    """Runs the ordered validation checks against the deployed project."""

    def __init__(self, logger, console, requests_module=requests, sleep=time.sleep, endpoint_delay: float = 3.0):
        self.logger = logger
        self.console = console
        self.requests = requests_module
        self.sleep = sleep
        self.endpoint_delay = endpoint_delay

    def _require_service(self, state, service: str, label: str):
        self.logger.info("Checking %s service...", label)
        if not state.service_active(service):
            self.logger.error("%s service is not running", label)
            raise DeployError(actionable_error("service_inactive", service=service))
        self.logger.log(SUCCESS, "%s service is active", label)

    def _advise(self, run_context, message: str):
        self.logger.warning(message)
        run_context.record_warning(message)

    def probe_public_endpoint(self, host: str) -> bool:
        url = f"http://{host}/" if ":" not in host else f"http://[{host}]/"
        try:
            response = self.requests.get(url, timeout=10, allow_redirects=True)
            response.close()
        except self.requests.RequestException as exc:
            self.logger.debug("Public probe of %s failed: %s", url, exc)
            return False
        return response.status_code < 500

    def validate(self, state, config, run_context):
        self.logger.info("Running deployment validation checks...")

        self._require_service(state, DOCKER_SERVICE, "Docker")

        self.logger.info("Checking container health...")
        if run_context.deploy_kind == KIND_COMPOSE:
            running = state.group_running(run_context.compose_file)
        else:
            running = state.container_running()
        if not running:
            self.logger.error("Container is not running")
            raise DeployError(actionable_error("container_not_running", project=config.project))
        self.logger.log(SUCCESS, "Container is running")

        self._require_service(state, PROXY_SERVICE, "Nginx")

        self.logger.info("Testing application endpoint...")
        self.sleep(self.endpoint_delay)
        if state.http_probe(f"http://localhost:{config.port}"):
            self.logger.log(SUCCESS, "Application responding on port %s", config.port)
        else:
            self._advise(run_context, f"Application may not be responding yet on port {config.port}")

        self.logger.info("Testing Nginx reverse proxy...")
        if state.http_probe("http://localhost"):
            self.logger.log(SUCCESS, "Nginx proxy is working")
        else:
            self._advise(run_context, "Nginx proxy test inconclusive")

        self.logger.info("Testing public endpoint from this machine...")
        if self.probe_public_endpoint(config.host):
            self.logger.log(SUCCESS, "Application reachable at http://%s", config.host)
        else:
            self._advise(run_context, f"http://{config.host} is not reachable from this machine")

        self.logger.log(SUCCESS, "Validation complete")
