"""JSON run record written next to the run log."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _elapsed(started_at: Optional[str], finished_at: str) -> Optional[float]:
    if not started_at:
        return None
    delta = datetime.fromisoformat(finished_at) - datetime.fromisoformat(started_at)
    return delta.total_seconds()


class ManifestService:
    """Tracks one deploy or cleanup run and rewrites the manifest after every change.

    The file is replaced atomically so a crash never leaves half a JSON
    document behind. Write failures are logged and otherwise ignored: the
    manifest is a record of the run, never a reason to abort it.
    """

    def __init__(self, manifest_file: str, logger):
        self.manifest_file = manifest_file
        self.logger = logger
        self.manifest: Dict[str, Any] = {
            "run_id": None,
            "mode": None,
            "status": "running",
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "log_file": None,
            "metadata": {},
            "steps": [],
            "warnings": [],
            "error": None,
        }

    def start_run(self, run_id: str, mode: str, log_file: Optional[str]):
        self.manifest.update(
            run_id=run_id,
            mode=mode,
            status="running",
            started_at=_timestamp(),
            log_file=log_file,
        )
        self.write()

    def set_metadata(self, metadata: Dict[str, Any]):
        self.manifest["metadata"] = dict(metadata)
        self.write()

    def _open_step(self, step_name: str) -> Optional[Dict[str, Any]]:
        for step in reversed(self.manifest["steps"]):
            if step["name"] == step_name and step["status"] == "running":
                return step
        return None

    def step_started(self, step_name: str):
        self.manifest["steps"].append(
            {"name": step_name, "status": "running", "started_at": _timestamp(), "error": None}
        )
        self.write()

    def step_finished(self, step_name: str, status: str, error: Optional[str] = None):
        step = self._open_step(step_name)
        if step is not None:
            finished_at = _timestamp()
            step.update(
                status=status,
                error=error,
                finished_at=finished_at,
                duration_seconds=_elapsed(step["started_at"], finished_at),
            )
        self.write()

    def add_warning(self, message: str):
        self.manifest["warnings"].append(message)
        self.write()

    def finalize(self, status: str, error: Optional[str] = None):
        finished_at = _timestamp()
        self.manifest.update(
            status=status,
            error=error,
            finished_at=finished_at,
            duration_seconds=_elapsed(self.manifest["started_at"], finished_at),
        )
        self.write()

    def write(self):
        directory = os.path.dirname(os.path.abspath(self.manifest_file))
        temp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=directory,
                prefix=".manifest-",
                suffix=".tmp",
                delete=False,
            ) as handle:
                temp_path = handle.name
                json.dump(self.manifest, handle, indent=2, sort_keys=True)
                handle.write("\n")
            os.replace(temp_path, self.manifest_file)
        except OSError as exc:
            self.logger.warning("Could not write manifest file '%s': %s", self.manifest_file, exc)
            if temp_path and os.path.exists(temp_path):
                os.remove(temp_path)
