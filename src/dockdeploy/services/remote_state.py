"""Per-project resources on the remote host, behind inspect/create/destroy operations.

Destroy operations follow an "absent is success" contract: they return
``True`` when something was removed, ``False`` when there was nothing to
remove, and raise ``DeployError`` only for a genuine failure.
"""

import posixpath
import shlex
from typing import List, Optional, Tuple

from dockdeploy.constants import (
    COMPOSE_FILE_NAMES,
    NGINX_DEFAULT_SITE,
    NGINX_SITES_AVAILABLE,
    NGINX_SITES_ENABLED,
    PROXY_SERVICE,
)
from dockdeploy.errors import DeployError


class RemoteDeploymentState:
    """Container, image, compose group, directory and nginx site of one project."""

    def __init__(self, remote, config, logger):
        self.remote = remote
        self.config = config
        self.logger = logger
        self._compose_cmd: Optional[str] = None

    @property
    def project(self) -> str:
        return self.config.project

    @property
    def remote_dir(self) -> str:
        return f'"$HOME"/{self.config.remote_dir}'

    @property
    def site_available(self) -> str:
        return posixpath.join(NGINX_SITES_AVAILABLE, self.project)

    @property
    def site_enabled(self) -> str:
        return posixpath.join(NGINX_SITES_ENABLED, self.project)

    def compose_cmd(self) -> str:
        if self._compose_cmd is None:
            if self.remote.run("docker compose version", check=False).ok:
                self._compose_cmd = "docker compose"
            elif self.remote.run("docker-compose --version", check=False).ok:
                self._compose_cmd = "docker-compose"
            else:
                raise DeployError(
                    "Docker Compose is not available on the remote host. "
                    "Install Docker Compose v2 (`docker compose`) or v1 (`docker-compose`)."
                )
        return self._compose_cmd

    def _compose(self, compose_file: str, args: str) -> str:
        return (
            f"cd {self.remote_dir} && {self.compose_cmd()} "
            f"-p {shlex.quote(self.project)} -f {shlex.quote(compose_file)} {args}"
        )

    # inspect

    def service_active(self, service: str) -> bool:
        return self.remote.run(f"systemctl is-active --quiet {shlex.quote(service)}", check=False).ok

    def _container_ids(self, running_only: bool) -> List[str]:
        flags = "" if running_only else "-a "
        name_filter = shlex.quote(f"name=^{self.config.container_name}$")
        result = self.remote.run(f"docker ps {flags}-q --filter {name_filter}", check=False)
        if not result.ok:
            raise DeployError(f"Could not list containers ({result.describe()}).")
        return result.output.split()

    def container_exists(self) -> bool:
        return bool(self._container_ids(running_only=False))

    def container_running(self) -> bool:
        return bool(self._container_ids(running_only=True))

    def group_running(self, compose_file: str) -> bool:
        result = self.remote.run(self._compose(compose_file, "ps -q --status running"), check=False)
        return result.ok and bool(result.output)

    def image_exists(self) -> bool:
        return self.remote.run(
            f"docker image inspect {shlex.quote(self.config.image_tag)}",
            check=False,
        ).ok

    def compose_file_on_host(self) -> Optional[str]:
        checks = " ".join(shlex.quote(name) for name in COMPOSE_FILE_NAMES)
        result = self.remote.run(
            f"cd {self.remote_dir} 2>/dev/null && for f in {checks}; do "
            f'if [ -f "$f" ]; then echo "$f"; break; fi; done',
            check=False,
        )
        name = result.output.splitlines()[0].strip() if result.ok and result.output else ""
        return name or None

    def directory_exists(self) -> bool:
        return self.remote.run(f"test -d {self.remote_dir}", check=False).ok

    def http_probe(self, url: str) -> bool:
        return self.remote.run(f"curl -f -s -o /dev/null {shlex.quote(url)}", check=False).ok

    def container_logs(self) -> str:
        result = self.remote.run(
            f"docker logs --tail 100 {shlex.quote(self.config.container_name)}",
            check=False,
        )
        return (result.stdout + result.stderr).strip()

    def group_logs(self, compose_file: str) -> str:
        result = self.remote.run(self._compose(compose_file, "logs --tail 100"), check=False)
        return (result.stdout + result.stderr).strip()

    def check_proxy_config(self) -> Tuple[bool, str]:
        result = self.remote.run("sudo nginx -t", check=False)
        return result.ok, (result.stderr or result.stdout).strip()

    # create

    def ensure_directory(self):
        self.remote.run(f"mkdir -p {self.remote_dir}", action="Creating deployment directory")

    def build_image(self):
        self.remote.run(
            f"cd {self.remote_dir} && docker build -t {shlex.quote(self.config.image_tag)} .",
            action="Building image",
        )

    def run_container(self, port: int):
        self.remote.run(
            "docker run -d "
            f"--name {shlex.quote(self.config.container_name)} "
            f"-p {port}:{port} "
            "--restart unless-stopped "
            f"{shlex.quote(self.config.image_tag)}",
            action="Starting container",
        )

    def group_up(self, compose_file: str):
        self.remote.run(self._compose(compose_file, "up -d --build"), action="Starting compose services")

    def write_site(self, content: str):
        self.remote.write_file(self.site_available, content)

    def enable_site(self):
        self.remote.run(
            f"sudo ln -sf {shlex.quote(self.site_available)} {shlex.quote(self.site_enabled)}",
            action="Enabling nginx site",
        )

    def reload_proxy(self):
        self.remote.run(f"sudo systemctl reload {PROXY_SERVICE}", action="Reloading nginx")

    # destroy

    def _remove_path(self, path: str, sudo: bool = True, recursive: bool = False) -> bool:
        prefix = "sudo " if sudo else ""
        flag = "-rf" if recursive else "-f"
        result = self.remote.run(
            f"if [ -e {path} ] || [ -L {path} ]; then {prefix}rm {flag} {path} && echo removed; fi",
            action=f"Removing {path}",
        )
        return result.output == "removed"

    def remove_container(self) -> bool:
        if not self.container_exists():
            return False
        self.remote.run(
            f"docker rm -f {shlex.quote(self.config.container_name)}",
            action="Removing container",
        )
        return True

    def remove_image(self) -> bool:
        if not self.image_exists():
            return False
        self.remote.run(
            f"docker rmi -f {shlex.quote(self.config.image_tag)}",
            action="Removing image",
        )
        return True

    def group_down(self, compose_file: Optional[str] = None) -> bool:
        compose_file = compose_file or self.compose_file_on_host()
        if not compose_file:
            return False
        self.remote.run(self._compose(compose_file, "down"), action="Stopping compose services")
        return True

    def remove_directory(self) -> bool:
        return self._remove_path(self.remote_dir, sudo=False, recursive=True)

    def disable_site(self) -> bool:
        return self._remove_path(shlex.quote(self.site_enabled))

    def remove_site(self) -> bool:
        removed_link = self.disable_site()
        removed_file = self._remove_path(shlex.quote(self.site_available))
        return removed_link or removed_file

    def remove_default_site(self) -> bool:
        return self._remove_path(shlex.quote(posixpath.join(NGINX_SITES_ENABLED, NGINX_DEFAULT_SITE)))
