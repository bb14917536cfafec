import logging
import os

import click
from rich.logging import RichHandler

from .constants import DEFAULT_COMMAND_TIMEOUT, DEFAULT_CONNECT_TIMEOUT, DEFAULT_SETTLE_SECONDS
from .core import MODE_CLEANUP, MODE_DEPLOY, Deployer, DeployError, default_log_file
from .log import add_file_handler
from .services.config_loader import ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option(
    "--cleanup",
    is_flag=True,
    default=False,
    help="Remove the deployed container, image, files and nginx site instead of deploying.",
)
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .dockdeploy.yml if present.",
)
@click.option("--repo-url", required=False, help="Git repository URL (http:// or https://).")
@click.option(
    "--token",
    required=False,
    envvar="DOCKDEPLOY_GIT_TOKEN",
    help="Personal access token for the repository (or DOCKDEPLOY_GIT_TOKEN).",
)
@click.option("--branch", required=False, help="Branch to deploy (default: main).")
@click.option("--ssh-user", required=False, help="SSH username on the remote host.")
@click.option("--host", required=False, help="Remote host IP address or hostname.")
@click.option("--ssh-key", required=False, type=click.Path(), help="Path to the SSH private key.")
@click.option("--port", required=False, type=int, help="Application port (1-65535).")
@click.option(
    "--work-dir",
    required=False,
    type=click.Path(file_okay=False),
    help=(
        "Tool directory holding run logs and the local repository cache. "
        "Defaults to the current directory, so run logs land where dockdeploy is invoked."
    ),
)
@click.option("--log-file", type=click.Path(), help="Path to log file (default: <work-dir>/deploy_<timestamp>.log)")
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option(
    "--yes",
    "assume_yes",
    is_flag=True,
    default=None,
    help="Skip the configuration summary confirmation.",
)
@click.option(
    "--settle-seconds",
    required=False,
    type=float,
    default=None,
    help="Seconds to wait after starting the container before checking it (default: 5).",
)
@click.option(
    "--command-timeout",
    required=False,
    type=float,
    default=None,
    help="Deadline in seconds for each remote command (default: 1800).",
)
@click.option(
    "--connect-timeout",
    required=False,
    type=int,
    default=None,
    help="SSH connection timeout in seconds for the connectivity probe (default: 10).",
)
def main(
    cleanup,
    config,
    repo_url,
    token,
    branch,
    ssh_user,
    host,
    ssh_key,
    port,
    work_dir,
    log_file,
    verbose,
    assume_yes,
    settle_seconds,
    command_timeout,
    connect_timeout,
):
    """Deploy a Dockerized application from a Git repository to a remote host behind nginx."""
    logger = logging.getLogger("dockdeploy")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), ".dockdeploy.yml")
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except DeployError as exc:
        raise click.ClickException(str(exc)) from exc

    presets = {
        "repo_url": _resolve_option(repo_url, config_values, "repo_url"),
        "token": token,
        "branch": _resolve_option(branch, config_values, "branch"),
        "ssh_user": _resolve_option(ssh_user, config_values, "ssh_user"),
        "host": _resolve_option(host, config_values, "host"),
        "ssh_key": _resolve_option(ssh_key, config_values, "ssh_key"),
        "port": _resolve_option(port, config_values, "port"),
    }
    work_dir = str(_resolve_option(work_dir, config_values, "work_dir", default=os.getcwd()))
    log_file = _resolve_option(log_file, config_values, "log_file") or default_log_file(work_dir)
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    assume_yes = bool(_resolve_option(assume_yes, config_values, "assume_yes", default=False))
    settle_seconds = float(
        _resolve_option(settle_seconds, config_values, "settle_seconds", default=DEFAULT_SETTLE_SECONDS)
    )
    command_timeout = float(
        _resolve_option(command_timeout, config_values, "command_timeout", default=DEFAULT_COMMAND_TIMEOUT)
    )
    connect_timeout = int(
        _resolve_option(connect_timeout, config_values, "connect_timeout", default=DEFAULT_CONNECT_TIMEOUT)
    )

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    try:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        add_file_handler(logger, log_file, verbose)
    except OSError as exc:
        raise click.ClickException(f"Could not open log file '{log_file}': {exc}") from exc

    try:
        deployer = Deployer(
            mode=MODE_CLEANUP if cleanup else MODE_DEPLOY,
            presets=presets,
            assume_yes=assume_yes,
            work_dir=work_dir,
            log_file=log_file,
            settle_seconds=settle_seconds,
            command_timeout=command_timeout,
            connect_timeout=connect_timeout,
        )
    except DeployError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(deployer.run())


if __name__ == "__main__":
    main()
