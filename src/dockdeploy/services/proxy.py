"""Nginx reverse-proxy site generation and activation."""

from dockdeploy.errors import DeployError
from dockdeploy.errors_catalog import actionable_error
from dockdeploy.log import SUCCESS

SITE_TEMPLATE = """\
server {{
    listen 80;
    server_name _;
    
    client_max_body_size 100M;
    
    location / {{
        proxy_pass http://localhost:{port};
        proxy_http_version 1.1;
        proxy_set_header Upgrade $http_upgrade;
        proxy_set_header Connection 'upgrade';
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
        proxy_cache_bypass $http_upgrade;
        proxy_read_timeout 300s;
        proxy_connect_timeout 75s;
    }}
}}
"""


def render_site_config(port: int) -> str:
    return SITE_TEMPLATE.format(port=int(port))


class ProxyConfiguratorService:
    """Writes, enables and validates the project's nginx site before reloading."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def configure(self, state, port: int):
        self.logger.info("Creating Nginx configuration...")
        state.write_site(render_site_config(port))
        state.enable_site()
        if state.remove_default_site():
            self.logger.info("Removed default nginx site")

        self.logger.info("Testing Nginx configuration...")
        ok, output = state.check_proxy_config()
        for line in output.splitlines():
            self.logger.info("[nginx] %s", line)
        if not ok:
            state.disable_site()
            raise DeployError(actionable_error("proxy_syntax_failed", project=state.project))

        self.logger.info("Reloading Nginx...")
        state.reload_proxy()
        self.logger.log(SUCCESS, "Nginx reverse proxy configured")
