"""Persistent stage state for one pipeline run.

The state file records, per stage, its status, timings and the snapshot it
writes, plus metadata about the inputs the run started with. Resuming a run
reads this file back.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

Status = Literal["pending", "running", "completed", "failed", "interrupted"]

DAG_VERSION = "1.0.0"
SNAPSHOT_EXTENSIONS = (".parquet", ".csv")


@dataclass
class Stage:
    name: str
    status: Status = "pending"
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    deps: List[str] = field(default_factory=list)
    artifact: Optional[str] = None


class MiniDAG:
    """Stage status tracker persisted as JSON next to the run's snapshots."""

    def __init__(self, state_file: Path, run_id: str = "") -> None:
        self.state_file = state_file
        self.run_id = run_id
        self._logger = logging.getLogger(__name__)
        # dicts keep insertion order, which is the stage order
        self._stages: Dict[str, Stage] = {}
        self._metadata: Dict[str, Any] = {
            "dag_version": DAG_VERSION,
            "run_id": run_id,
            "input_path": "",
            "config_path": "",
            "input_hash": "",
            "cmdline": "",
            "ts": "",
        }
        self._load()

    # ---- registration and transitions ----

    def register(
        self, name: str, deps: Optional[List[str]] = None, artifact: Optional[str] = None
    ) -> None:
        """Add a stage, keeping the status of a stage loaded from disk."""
        stage = self._stages.setdefault(name, Stage(name=name, deps=list(deps or [])))
        if artifact is not None:
            stage.artifact = artifact
        self._save()

    def _transition(self, name: str, status: Status) -> None:
        stage = self._stages[name]
        stage.status = status
        if status == "running":
            stage.start_time = time.time()
            stage.end_time = None
        else:
            stage.end_time = time.time()
        self._save()

    def start(self, name: str) -> None:
        self._transition(name, "running")

    def complete(self, name: str) -> None:
        self._transition(name, "completed")

    def fail(self, name: str) -> None:
        self._transition(name, "failed")

    def mark_interrupted(self, stage: str) -> None:
        """Record that the run was interrupted while ``stage`` was active."""
        self._metadata.update(
            status="interrupted", active_stage=stage, interrupt_timestamp=time.time()
        )
        if stage in self._stages:
            self._transition(stage, "interrupted")
        else:
            self._save()

    # ---- queries ----

    @property
    def stage_order(self) -> List[str]:
        return list(self._stages)

    def get_status(self, name: str) -> Optional[Status]:
        stage = self._stages.get(name)
        return stage.status if stage else None

    def is_completed(self, name: str) -> bool:
        return self.get_status(name) == "completed"

    def get_last_completed_stage(self) -> Optional[str]:
        """Latest stage, in stage order, whose status is completed."""
        completed = [name for name in self._stages if self.is_completed(name)]
        return completed[-1] if completed else None

    def get_previous_stage(self, name: str) -> Optional[str]:
        """Stage registered immediately before ``name``.

        Raises:
            KeyError: If ``name`` is not a registered stage

        """
        order = self.stage_order
        if name not in order:
            raise KeyError(f"Unknown stage '{name}'. Stages: {order}")
        idx = order.index(name)
        return order[idx - 1] if idx else None

    def get_artifact(self, name: str) -> Optional[str]:
        stage = self._stages.get(name)
        return stage.artifact if stage else None

    def validate_intermediate_files(self, stage_name: str, interim_dir: Path) -> bool:
        """Whether the snapshot written by ``stage_name`` is on disk."""
        artifact = self.get_artifact(stage_name)
        if not artifact:
            return False
        return any((interim_dir / f"{artifact}{ext}").exists() for ext in SNAPSHOT_EXTENSIONS)

    # ---- run metadata ----

    def update_metadata(
        self, input_path: str, config_path: str, input_hash: str, cmdline: str = ""
    ) -> None:
        """Record the inputs this run was started with."""
        self._metadata.update(
            input_path=str(input_path),
            config_path=str(config_path),
            input_hash=input_hash,
            cmdline=cmdline,
            ts=time.time(),
        )
        self._save()

    def get_input_hash(self) -> Optional[str]:
        return self._metadata.get("input_hash") or None

    # ---- persistence ----

    def _save(self) -> None:
        if self.run_id and not self._metadata.get("run_id"):
            self._metadata["run_id"] = self.run_id

        state = {
            "stages": {name: asdict(stage) for name, stage in self._stages.items()},
            "metadata": self._metadata,
        }
        self._atomic_write(self.state_file, json.dumps(state, indent=2))

    def _load(self) -> None:
        """Read a previous state file; a corrupted one is ignored."""
        if not self.state_file.exists():
            return

        try:
            state = json.loads(self.state_file.read_text())
        except json.JSONDecodeError as e:
            self._logger.error("Corrupted state file %s: %s", self.state_file, e)
            return

        for name, saved in state.get("stages", {}).items():
            self._stages[name] = Stage(
                name=name,
                status=saved.get("status", "pending"),
                start_time=saved.get("start_time"),
                end_time=saved.get("end_time"),
                deps=list(saved.get("deps", [])),
                artifact=saved.get("artifact"),
            )

        metadata = state.get("metadata", {})
        if "dag_version" not in metadata:
            self._logger.info("Defaulting missing dag_version to %s", DAG_VERSION)
            metadata["dag_version"] = DAG_VERSION
        self._metadata.update(metadata)

    @staticmethod
    def _atomic_write(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile("w", delete=False, dir=str(path.parent)) as tmp:
            tmp.write(content)
        os.replace(tmp.name, path)
