"""Transfers the source tree and (re)starts the project's container(s)."""

import posixpath
import time
from pathlib import Path
from typing import Optional

from dockdeploy.constants import TRANSFER_EXCLUDES
from dockdeploy.errors import DeployError
from dockdeploy.errors_catalog import actionable_error
from dockdeploy.log import SUCCESS

KIND_COMPOSE = "compose"
KIND_DOCKERFILE = "dockerfile"


class ContainerDeployerService:
    """Mirrors the source to the host and replaces any previous instance of the project."""

    def __init__(self, archive_service, filesystem_service, logger, console, sleep=time.sleep):
        self.archive = archive_service
        self.filesystem = filesystem_service
        self.logger = logger
        self.console = console
        self.sleep = sleep

    def detect_definition(self, source_dir: Path):
        """Return (kind, compose_file) for the deployable definition at the source root."""
        compose_file = self.filesystem.find_compose_file(source_dir)
        if compose_file:
            self.logger.log(SUCCESS, "%s found", compose_file)
            return KIND_COMPOSE, compose_file
        if self.filesystem.has_dockerfile(source_dir):
            self.logger.log(SUCCESS, "Dockerfile found")
            return KIND_DOCKERFILE, None
        raise DeployError(actionable_error("missing_deploy_definition", path=str(source_dir)))

    def transfer(self, remote, state, source_dir: Path):
        state.ensure_directory()
        self.logger.info("Transferring project files...")
        result = remote.upload_tree_rsync(str(source_dir), state.config.remote_dir, TRANSFER_EXCLUDES)
        if result.ok:
            self.logger.log(SUCCESS, "Files transferred successfully via rsync")
            return "rsync"

        self.logger.warning("rsync failed (%s), falling back to tar+scp method...", result.describe())
        archive_path = self.archive.create_tarball(str(source_dir), TRANSFER_EXCLUDES)
        remote_archive = posixpath.join("/tmp", posixpath.basename(archive_path))
        try:
            self.logger.info("Transferring via scp...")
            remote.upload_file_scp(archive_path, remote_archive)
            self.logger.info("Extracting on remote server...")
            remote.run(
                f"rm -rf {state.remote_dir} && mkdir -p {state.remote_dir} && "
                f"tar xzf {remote_archive} -C {state.remote_dir} && rm -f {remote_archive}",
                action="Extracting archive",
            )
        finally:
            self.filesystem.remove_file(archive_path)
        self.logger.log(SUCCESS, "Files transferred successfully via tar+scp")
        return "tar"

    def neutralize(self, state, compose_file: Optional[str] = None):
        """Stop whatever the project runs now.

        Without ``compose_file`` the group is found from the compose file
        already on the host, so this must run before a transfer replaces it.
        """
        self.logger.info("Stopping and removing existing containers...")
        if state.remove_container():
            self.logger.info("Removed container %s", state.config.container_name)
        if state.group_down(compose_file):
            self.logger.info("Stopped previous compose services for %s", state.project)
        if state.remove_image():
            self.logger.info("Removed image %s", state.config.image_tag)

    def start(self, state, kind: str, compose_file: Optional[str], port: int):
        if kind == KIND_COMPOSE:
            self.logger.info("Using %s...", compose_file)
            state.group_up(compose_file)
        else:
            self.logger.info("Using Dockerfile...")
            state.build_image()
            self.logger.info("Running new container...")
            state.run_container(port)

    def wait_until_running(self, state, kind: str, compose_file: Optional[str], settle_seconds: float):
        with self.console.status("Waiting for container to start..."):
            self.sleep(settle_seconds)

        if kind == KIND_COMPOSE:
            running = state.group_running(compose_file)
            logs = state.group_logs(compose_file) if not running else ""
        else:
            running = state.container_running()
            logs = state.container_logs() if not running else ""

        if not running:
            self.logger.error("Container failed to start")
            for line in logs.splitlines():
                self.logger.error("[container] %s", line)
            raise DeployError(actionable_error("container_not_running", project=state.project))
        self.logger.log(SUCCESS, "Container is running")

    def deploy(self, remote, state, source_dir: Path, kind: str, compose_file: Optional[str], port: int, settle_seconds: float):
        self.neutralize(state)
        self.transfer(remote, state, source_dir)
        self.logger.info("Building and starting Docker container...")
        self.start(state, kind, compose_file, port)
        self.wait_until_running(state, kind, compose_file, settle_seconds)
        self.logger.log(SUCCESS, "Application deployed successfully")
