"""Removal of everything a deployment created for one project."""

from dockdeploy.errors import DeployError
from dockdeploy.errors_catalog import actionable_error
from dockdeploy.log import SUCCESS


class TeardownService:
    """Reverse of the deploy path; every step tolerates a missing target."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def _report(self, removed: bool, what: str):
        if removed:
            self.logger.info("Removed %s", what)
        else:
            self.logger.info("No %s to remove", what)

    def teardown(self, state):
        config = state.config
        self.logger.info("Removing resources on remote server...")

        self.logger.info("Stopping containers...")
        self._report(state.remove_container(), f"container {config.container_name}")
        self._report(state.group_down(), f"compose services for {config.project}")

        self.logger.info("Removing images...")
        self._report(state.remove_image(), f"image {config.image_tag}")

        self.logger.info("Removing deployment directory...")
        self._report(state.remove_directory(), f"directory ~/{config.remote_dir}")

        self.logger.info("Removing Nginx configuration...")
        self._report(state.remove_site(), f"nginx site {config.project}")

        ok, output = state.check_proxy_config()
        if not ok:
            for line in output.splitlines():
                self.logger.error("[nginx] %s", line)
            raise DeployError(actionable_error("proxy_syntax_failed", project=config.project))
        state.reload_proxy()
        self.logger.info("Nginx reloaded")

        self.logger.log(SUCCESS, "All resources removed successfully")
