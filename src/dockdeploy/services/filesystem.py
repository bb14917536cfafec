"""Local filesystem helpers for dockdeploy."""

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from rich.console import Console

from dockdeploy.constants import COMPOSE_FILE_NAMES, DOCKERFILE_NAME


class FileSystemService:
    """Encapsulates local file and directory side effects."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def ensure_dir(self, path: Path) -> Path:
        path.mkdir(parents=True, exist_ok=True)
        return path

    def find_compose_file(self, root: Path) -> Optional[str]:
        for name in COMPOSE_FILE_NAMES:
            if (root / name).is_file():
                return name
        return None

    def has_dockerfile(self, root: Path) -> bool:
        return (root / DOCKERFILE_NAME).is_file()

    def remove_file(self, path: str):
        if os.path.exists(path):
            try:
                os.remove(path)
            except OSError as exc:
                self.logger.warning("Could not remove %s: %s", path, exc)

    def cleanup_dir(self, path: str):
        if os.path.exists(path):
            try:
                shutil.rmtree(path)
                self.logger.debug("Removed directory: %s", path)
            except Exception as exc:
                message = f"Warning: Could not remove {path}: {exc}"
                self.console.print(f"[yellow]{message}[/yellow]")
                self.logger.warning(message)
