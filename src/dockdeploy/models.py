"""Shared domain models for dockdeploy."""

import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .constants import REMOTE_DEPLOYMENTS_DIR


@dataclass(frozen=True)
class DeploymentConfig:
    """Operator-supplied parameters, fixed once the input gate is passed."""

    repo_url: str
    token: str = field(repr=False)
    branch: str
    ssh_user: str
    host: str
    ssh_key: str
    port: int
    project: str

    @property
    def ssh_target(self) -> str:
        return f"{self.ssh_user}@{self.host}"

    @property
    def copy_target(self) -> str:
        """Target prefix for scp/rsync, which need IPv6 literals in brackets."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{self.ssh_user}@{host}"

    @property
    def container_name(self) -> str:
        return f"{self.project}_app"

    @property
    def image_tag(self) -> str:
        return f"{self.project}:latest"

    @property
    def remote_dir(self) -> str:
        """Per-project directory relative to the remote user's home."""
        return posixpath.join(REMOTE_DEPLOYMENTS_DIR, self.project)

    def summary(self) -> dict:
        return {
            "repository": self.repo_url,
            "branch": self.branch,
            "server": self.ssh_target,
            "port": self.port,
            "project": self.project,
        }


@dataclass
class StepOutcome:
    name: str
    status: str = "running"
    error: Optional[str] = None


@dataclass
class RunContext:
    """Mutable per-run state owned by the orchestrator."""

    run_id: str
    mode: str
    log_file: str
    work_dir: Path
    source_dir: Optional[Path] = None
    deploy_kind: Optional[str] = None
    compose_file: Optional[str] = None
    steps: List[StepOutcome] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def record_warning(self, message: str):
        self.warnings.append(message)

    @property
    def failed_step(self) -> Optional[str]:
        for step in reversed(self.steps):
            if step.status == "failed":
                return step.name
        return None
