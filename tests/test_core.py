import json
import logging
import shutil

import click
import pytest
import requests

import dockdeploy.core as core_module
from dockdeploy.core import MODE_CLEANUP, MODE_DEPLOY, Deployer
from dockdeploy.errors import DeployError
from dockdeploy.log import add_file_handler


class FakeResponse:
    status_code = 200

    def close(self):
        return None


class FakeRequests:
    RequestException = requests.RequestException

    def get(self, url, timeout=None, allow_redirects=True):
        return FakeResponse()


def refuse_prompt(*_args, **_kwargs):
    raise AssertionError("no prompt expected")


def answer(text):
    def prompt(*_args, **_kwargs):
        return text

    return prompt


@pytest.fixture
def presets(ssh_key):
    return {
        "repo_url": "https://example.com/acme/widget.git",
        "token": "s3cr3t-token",
        "branch": "main",
        "ssh_user": "deploy",
        "host": "10.0.0.5",
        "ssh_key": str(ssh_key),
        "port": 8080,
    }


@pytest.fixture
def build_deployer(tmp_path, presets, remote_factory, state_factory):
    def _build(mode=MODE_DEPLOY, files=("Dockerfile",), prompt=refuse_prompt, assume_yes=True, sync=None):
        deployer = Deployer(
            mode=mode,
            presets=presets,
            assume_yes=assume_yes,
            work_dir=str(tmp_path),
            log_file=str(tmp_path / "deploy.log"),
            settle_seconds=0,
            prompt=prompt,
            remote_factory=remote_factory,
            state_factory=state_factory,
        )

        def fake_sync(config, scratch_root):
            target = scratch_root / config.project
            shutil.rmtree(target, ignore_errors=True)
            target.mkdir(parents=True)
            for name in files:
                (target / name).write_text("FROM scratch\n", encoding="utf-8")
            return target

        deployer.source_sync_service.sync = sync or fake_sync
        deployer.container_deployer_service.sleep = lambda _seconds: None
        deployer.validator_service.sleep = lambda _seconds: None
        deployer.validator_service.requests = FakeRequests()
        return deployer

    return _build


def read_manifest(tmp_path):
    return json.loads((tmp_path / "deploy.json").read_text(encoding="utf-8"))


def test_deploy_runs_container_behind_proxy(tmp_path, fake_host, build_deployer):
    exit_code = build_deployer().run()

    assert exit_code == 0
    assert fake_host.containers == {"widget_app": True}
    assert fake_host.images == {"widget:latest"}
    assert "proxy_pass http://localhost:8080;" in fake_host.sites_available["widget"]
    assert fake_host.sites_enabled == {"widget"}
    assert fake_host.reloads == 1

    manifest = read_manifest(tmp_path)
    assert manifest["status"] == "success"
    assert manifest["metadata"]["project"] == "widget"
    assert [step["name"] for step in manifest["steps"]] == [
        "collect_input",
        "clone_repository",
        "verify_docker_config",
        "test_ssh_connectivity",
        "prepare_remote_environment",
        "deploy_application",
        "configure_nginx",
        "validate_deployment",
    ]


def test_second_deploy_converges_to_same_state(fake_host, build_deployer):
    assert build_deployer().run() == 0
    first = (dict(fake_host.containers), set(fake_host.images), dict(fake_host.sites_available))

    assert build_deployer().run() == 0

    assert (fake_host.containers, fake_host.images, fake_host.sites_available) == first
    assert fake_host.sites_enabled == {"widget"}


def test_switch_from_compose_to_dockerfile_stops_old_group(fake_host, build_deployer):
    assert build_deployer(files=("docker-compose.yml",)).run() == 0
    assert fake_host.groups == {"widget": True}

    assert build_deployer(files=("Dockerfile",)).run() == 0

    assert fake_host.groups == {}
    assert fake_host.containers == {"widget_app": True}
    assert fake_host.directories["deployments/widget"] == ["Dockerfile"]


def test_interrupted_prompt_is_reported_as_abort(tmp_path, fake_host, build_deployer):
    def interrupted(*_args, **_kwargs):
        raise click.Abort()

    exit_code = build_deployer(assume_yes=False, prompt=interrupted).run()

    assert exit_code == 1
    assert fake_host.transfers == []
    manifest = read_manifest(tmp_path)
    assert manifest["status"] == "aborted"
    assert manifest["error"] == "Operation cancelled by user."
    assert manifest["steps"][0]["status"] == "cancelled"


def test_cleanup_after_deploy_leaves_nothing_behind(fake_host, build_deployer):
    assert build_deployer().run() == 0

    exit_code = build_deployer(mode=MODE_CLEANUP, prompt=answer("yes")).run()

    assert exit_code == 0
    assert fake_host.containers == {}
    assert fake_host.images == set()
    assert fake_host.directories == {}
    assert fake_host.sites_available == {}
    assert fake_host.sites_enabled == set()


def test_cleanup_requires_exact_yes(fake_host, build_deployer):
    assert build_deployer().run() == 0

    exit_code = build_deployer(mode=MODE_CLEANUP, prompt=answer("y")).run()

    assert exit_code == 0
    assert fake_host.containers == {"widget_app": True}


def test_missing_definition_aborts_before_transfer(tmp_path, fake_host, build_deployer):
    exit_code = build_deployer(files=("README.md",)).run()

    assert exit_code == 1
    assert fake_host.transfers == []
    assert fake_host.scripts == []
    manifest = read_manifest(tmp_path)
    assert manifest["status"] == "failed"
    assert manifest["steps"][-1]["name"] == "verify_docker_config"
    assert manifest["steps"][-1]["status"] == "failed"


def test_unresponsive_application_still_succeeds_with_warning(tmp_path, fake_host, build_deployer):
    fake_host.http_ok["http://localhost:8080"] = False

    exit_code = build_deployer().run()

    assert exit_code == 0
    assert read_manifest(tmp_path)["warnings"] == ["Application may not be responding yet on port 8080"]


def test_declined_confirmation_cancels_without_touching_host(tmp_path, fake_host, build_deployer):
    exit_code = build_deployer(assume_yes=False, prompt=answer("no")).run()

    assert exit_code == 0
    assert fake_host.transfers == []
    assert read_manifest(tmp_path)["status"] == "cancelled"


def test_broken_proxy_config_is_not_enabled(fake_host, build_deployer):
    fake_host.proxy_valid = False

    exit_code = build_deployer().run()

    assert exit_code == 1
    assert "widget" not in fake_host.sites_enabled
    assert fake_host.reloads == 0


def test_credential_never_reaches_log_file_or_manifest(tmp_path, build_deployer):
    log_file = tmp_path / "deploy.log"
    handler = add_file_handler(core_module.logger, str(log_file), verbose=False)

    def failing_sync(config, scratch_root):
        raise DeployError("fatal: could not read from https://s3cr3t-token@example.com/acme/widget.git")

    try:
        exit_code = build_deployer(sync=failing_sync).run()
    finally:
        core_module.logger.removeHandler(handler)
        handler.close()

    assert exit_code == 1
    log_text = log_file.read_text(encoding="utf-8")
    assert "s3cr3t-token" not in log_text
    assert "could not read from ***" in log_text
    assert "s3cr3t-token" not in (tmp_path / "deploy.json").read_text(encoding="utf-8")


def test_unknown_mode_is_rejected(tmp_path):
    with pytest.raises(DeployError, match="Unknown mode"):
        Deployer(mode="rollback", work_dir=str(tmp_path), log_file=str(tmp_path / "x.log"))


@pytest.fixture(autouse=True)
def _info_level_logging():
    previous = core_module.logger.level
    core_module.logger.setLevel(logging.INFO)
    yield
    core_module.logger.setLevel(previous)
