"""Actionable error catalog for dockdeploy."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "ssh_unreachable": {
        "what": "SSH connection to {target} failed.",
        "next": "Check the host address, the SSH key and that port 22 is reachable.",
    },
    "missing_deploy_definition": {
        "what": "Neither a Dockerfile nor a compose file was found in {path}.",
        "next": "Add a `Dockerfile` or `docker-compose.yml` at the repository root.",
    },
    "container_not_running": {
        "what": "Container for project `{project}` is not running.",
        "next": "Inspect the container logs above, fix the application and re-run the deployment.",
    },
    "proxy_syntax_failed": {
        "what": "Nginx configuration test failed for site `{project}`.",
        "next": "Run `sudo nginx -t` on the host to find the failing site; nginx was not reloaded.",
    },
    "service_inactive": {
        "what": "Service `{service}` is not active on the remote host.",
        "next": "Start it with `sudo systemctl start {service}` and re-run the deployment.",
    },
    "git_sync_failed": {
        "what": "Could not synchronize branch `{branch}` of the repository.",
        "next": "Verify the repository URL, branch name and access token, or remove `{path}`.",
    },
    "provisioning_failed": {
        "what": "Remote environment provisioning failed.",
        "next": "Check apt sources and sudo access on the host, then re-run the deployment.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
