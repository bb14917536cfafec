"""Remote environment provisioning: packages, Docker, compose, services."""

from dockdeploy.constants import DOCKER_SERVICE, PREREQUISITE_PACKAGES, PROXY_SERVICE
from dockdeploy.errors import DeployError
from dockdeploy.errors_catalog import actionable_error
from dockdeploy.log import SUCCESS

DOCKER_REPO_SETUP = """\
curl -fsSL https://download.docker.com/linux/ubuntu/gpg | sudo gpg --batch --yes --dearmor -o /usr/share/keyrings/docker-archive-keyring.gpg
echo "deb [arch=$(dpkg --print-architecture) signed-by=/usr/share/keyrings/docker-archive-keyring.gpg] https://download.docker.com/linux/ubuntu $(lsb_release -cs) stable" | sudo tee /etc/apt/sources.list.d/docker.list > /dev/null"""

COMPOSE_BINARY_URL = (
    "https://github.com/docker/compose/releases/latest/download/docker-compose-$(uname -s)-$(uname -m)"
)


class ProvisionerService:
    """Brings the remote host to the state the deployment needs, skipping what is already there."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def build_script(self) -> str:
        packages = " ".join(PREREQUISITE_PACKAGES)
        return f"""\
set -e
export DEBIAN_FRONTEND=noninteractive

echo "[INFO] Updating package lists..."
sudo apt-get update -qq

echo "[INFO] Installing prerequisites..."
sudo apt-get install -y -qq {packages}

if ! docker --version > /dev/null 2>&1; then
    echo "[INFO] Installing Docker..."
{_indent(DOCKER_REPO_SETUP)}
    sudo apt-get update -qq
    sudo apt-get install -y -qq docker-ce docker-ce-cli containerd.io
    echo "[SUCCESS] Docker installed"
else
    echo "[INFO] Docker already installed"
fi

if ! docker compose version > /dev/null 2>&1 && ! docker-compose --version > /dev/null 2>&1; then
    echo "[INFO] Installing Docker Compose..."
    sudo curl -fsSL "{COMPOSE_BINARY_URL}" -o /usr/local/bin/docker-compose
    sudo chmod +x /usr/local/bin/docker-compose
    echo "[SUCCESS] Docker Compose installed"
else
    echo "[INFO] Docker Compose already installed"
fi

if ! id -nG "$USER" | tr ' ' '\\n' | grep -qx docker; then
    echo "[INFO] Adding user to docker group..."
    sudo usermod -aG docker "$USER"
    echo "[WARNING] User added to docker group."
fi

echo "[INFO] Enabling services..."
sudo systemctl enable {DOCKER_SERVICE}
sudo systemctl start {DOCKER_SERVICE}
sudo systemctl enable {PROXY_SERVICE}
sudo systemctl start {PROXY_SERVICE}

echo "[INFO] Installed versions:"
docker --version
docker compose version 2>/dev/null || docker-compose --version
nginx -v 2>&1
"""

    def provision(self, remote):
        self.logger.info("Installing required packages on remote server...")
        try:
            remote.run_script(self.build_script(), action="Provisioning")
        except DeployError as exc:
            raise DeployError(f"{actionable_error('provisioning_failed')}\n{exc}") from exc
        self.logger.log(SUCCESS, "Remote environment prepared")


def _indent(text: str, prefix: str = "    ") -> str:
    return "\n".join(prefix + line for line in text.splitlines())
