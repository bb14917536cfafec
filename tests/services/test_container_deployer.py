import os

import pytest

from dockdeploy.errors import DeployError
from dockdeploy.services.archive import ArchiveService
from dockdeploy.services.container_deployer import KIND_COMPOSE, KIND_DOCKERFILE, ContainerDeployerService
from dockdeploy.services.filesystem import FileSystemService
from dockdeploy.services.remote import REMOTE_ERROR, SUCCESS, RemoteResult


def _service(dummy_logger, dummy_console):
    return ContainerDeployerService(
        archive_service=ArchiveService(),
        filesystem_service=FileSystemService(logger=dummy_logger, console=dummy_console),
        logger=dummy_logger,
        console=dummy_console,
        sleep=lambda _seconds: None,
    )


def _source(tmp_path, *files):
    source = tmp_path / "widget"
    source.mkdir()
    for name in files:
        (source / name).write_text("x", encoding="utf-8")
    return source


def test_detect_definition_prefers_compose(tmp_path, dummy_logger, dummy_console):
    source = _source(tmp_path, "Dockerfile", "docker-compose.yml")

    assert _service(dummy_logger, dummy_console).detect_definition(source) == (KIND_COMPOSE, "docker-compose.yml")


def test_detect_definition_dockerfile(tmp_path, dummy_logger, dummy_console):
    source = _source(tmp_path, "Dockerfile")

    assert _service(dummy_logger, dummy_console).detect_definition(source) == (KIND_DOCKERFILE, None)


def test_detect_definition_missing_is_fatal(tmp_path, dummy_logger, dummy_console):
    source = _source(tmp_path, "README.md")

    with pytest.raises(DeployError, match="Neither a Dockerfile nor a compose file"):
        _service(dummy_logger, dummy_console).detect_definition(source)


def test_deploy_replaces_previous_instance(tmp_path, fake_host, fake_state, dummy_logger, dummy_console):
    source = _source(tmp_path, "Dockerfile")
    fake_host.containers["widget_app"] = True
    fake_host.images.add("widget:latest")

    _service(dummy_logger, dummy_console).deploy(
        fake_state.remote, fake_state, source, KIND_DOCKERFILE, None, 8080, settle_seconds=0
    )

    assert fake_host.containers == {"widget_app": True}
    assert fake_host.images == {"widget:latest"}
    assert fake_host.directories["deployments/widget"] == ["Dockerfile"]


def test_deploy_surfaces_logs_when_container_does_not_start(tmp_path, fake_host, fake_state, dummy_logger, dummy_console):
    source = _source(tmp_path, "Dockerfile")
    fake_host.start_ok = False

    with pytest.raises(DeployError, match="not running"):
        _service(dummy_logger, dummy_console).deploy(
            fake_state.remote, fake_state, source, KIND_DOCKERFILE, None, 8080, settle_seconds=0
        )

    assert "[container] Error: app crashed" in dummy_logger.messages("ERROR")


def test_deploy_compose_group(tmp_path, fake_host, fake_state, dummy_logger, dummy_console):
    source = _source(tmp_path, "docker-compose.yml")

    _service(dummy_logger, dummy_console).deploy(
        fake_state.remote, fake_state, source, KIND_COMPOSE, "docker-compose.yml", 8080, settle_seconds=0
    )

    assert fake_host.groups == {"widget": True}
    assert fake_host.containers == {}


class FallbackRemote:
    def __init__(self):
        self.uploads = []
        self.commands = []

    def upload_tree_rsync(self, *_args):
        return RemoteResult(REMOTE_ERROR, None, stderr="Required command not found: rsync")

    def upload_file_scp(self, local_path, remote_path):
        self.uploads.append((local_path, remote_path))
        return RemoteResult(SUCCESS, 0)

    def run(self, command, **_kwargs):
        self.commands.append(command)
        return RemoteResult(SUCCESS, 0)


def test_transfer_falls_back_to_archive(tmp_path, fake_state, dummy_logger, dummy_console):
    source = _source(tmp_path, "Dockerfile")
    remote = FallbackRemote()

    method = _service(dummy_logger, dummy_console).transfer(remote, fake_state, source)

    assert method == "tar"
    local_archive, remote_archive = remote.uploads[0]
    assert remote_archive.startswith("/tmp/deploy_widget_")
    assert "tar xzf" in remote.commands[0]
    assert not os.path.exists(local_archive)


def test_deploy_stops_previous_group_before_files_are_replaced(tmp_path, fake_host, fake_state, dummy_logger, dummy_console):
    source = _source(tmp_path, "Dockerfile")
    fake_host.directories["deployments/widget"] = ["docker-compose.yml"]
    fake_host.groups["widget"] = True

    _service(dummy_logger, dummy_console).deploy(
        fake_state.remote, fake_state, source, KIND_DOCKERFILE, None, 8080, settle_seconds=0
    )

    assert fake_host.groups == {}
    assert fake_host.containers == {"widget_app": True}
    assert "Stopped previous compose services for widget" in dummy_logger.messages("INFO")
