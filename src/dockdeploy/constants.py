"""Fixed names and defaults shared across dockdeploy services."""

DOCKERFILE_NAME = "Dockerfile"
COMPOSE_FILE_NAMES = (
    "docker-compose.yml",
    "docker-compose.yaml",
    "compose.yml",
    "compose.yaml",
)

TRANSFER_EXCLUDES = (".git", "node_modules", "__pycache__", ".env")

SCRATCH_DIR_NAME = ".tmp_deploy"
REMOTE_DEPLOYMENTS_DIR = "deployments"

NGINX_SITES_AVAILABLE = "/etc/nginx/sites-available"
NGINX_SITES_ENABLED = "/etc/nginx/sites-enabled"
NGINX_DEFAULT_SITE = "default"

PREREQUISITE_PACKAGES = (
    "apt-transport-https",
    "ca-certificates",
    "curl",
    "software-properties-common",
    "gnupg",
    "nginx",
)

DOCKER_SERVICE = "docker"
PROXY_SERVICE = "nginx"

DEFAULT_BRANCH = "main"
DEFAULT_SETTLE_SECONDS = 5.0
DEFAULT_ENDPOINT_DELAY_SECONDS = 3.0
DEFAULT_COMMAND_TIMEOUT = 1800.0
DEFAULT_CONNECT_TIMEOUT = 10

KEY_FILE_MODE = 0o600
