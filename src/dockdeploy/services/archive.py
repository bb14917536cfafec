"""Archive helpers for the whole-tree transfer fallback."""

import os
import tarfile
import tempfile
import time
from pathlib import Path
from typing import Iterable, Optional

from dockdeploy.errors import DeployError


class ArchiveService:
    """Builds gzip tarballs of a source tree, skipping excluded names."""

    def is_excluded(self, relative_path: str, excludes: Iterable[str]) -> bool:
        parts = Path(relative_path).parts
        return any(part in excludes for part in parts)

    def create_tarball(self, source_dir: str, excludes: Iterable[str], dest_dir: Optional[str] = None) -> str:
        base = Path(source_dir).resolve()
        if not base.is_dir():
            raise DeployError(f"Source directory not found: {source_dir}")

        excludes = tuple(excludes)
        project = base.name
        archive_path = os.path.join(
            dest_dir or tempfile.gettempdir(),
            f"deploy_{project}_{int(time.time())}.tar.gz",
        )

        def _filter(member: tarfile.TarInfo) -> Optional[tarfile.TarInfo]:
            if self.is_excluded(member.name, excludes):
                return None
            return member

        try:
            with tarfile.open(archive_path, "w:gz") as archive:
                for entry in sorted(base.iterdir()):
                    if entry.name in excludes:
                        continue
                    archive.add(str(entry), arcname=entry.name, filter=_filter)
        except (OSError, tarfile.TarError) as exc:
            raise DeployError(f"Could not create archive of {source_dir}: {exc}") from exc

        return archive_path
