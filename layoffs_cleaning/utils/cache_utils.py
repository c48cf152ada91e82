"""Run identification and run directory management."""

import hashlib
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

from layoffs_cleaning.utils.path_utils import get_interim_dir, get_processed_dir

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1 << 16


def compute_file_hash(file_path: str) -> str:
    """SHA256 hex digest of a file's contents."""
    digest = hashlib.sha256()
    with open(file_path, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            digest.update(chunk)
    return digest.hexdigest()


def _hash_files(paths: Iterable[str]) -> Any:
    """Digest over the contents of ``paths`` in sorted order, skipping missing files."""
    digest = hashlib.sha256()
    for path in sorted(paths):
        if Path(path).exists():
            digest.update(compute_file_hash(path).encode())
    return digest


def compute_inputs_hash(input_paths: List[str], config_paths: List[str]) -> str:
    """Combined hash of input and config file contents.

    Resuming a run compares this against the value recorded when it started.
    """
    digest = _hash_files(input_paths)
    digest.update(_hash_files(config_paths).digest())
    return digest.hexdigest()


def generate_run_id(input_paths: List[str], config_paths: List[str]) -> str:
    """Run id of the form ``{input_hash[:8]}_{config_hash[:8]}_{YYYYMMDDHHMMSS}``."""
    input_part = _hash_files(input_paths).hexdigest()[:8]
    config_part = _hash_files(config_paths).hexdigest()[:8]
    run_id = f"{input_part}_{config_part}_{datetime.now():%Y%m%d%H%M%S}"
    logger.info(f"run_id | generated | run_id={run_id}")
    return run_id


def create_run_directories(
    run_id: str, output_dir: Optional[str] = None
) -> Tuple[Path, Path]:
    """Create the interim and processed directories for a run.

    Returns:
        Tuple of (interim_dir, processed_dir)

    """
    dirs = get_interim_dir(run_id, output_dir), get_processed_dir(run_id, output_dir)
    for directory in dirs:
        directory.mkdir(parents=True, exist_ok=True)
    logger.info(f"run_dirs | created | interim={dirs[0]} | processed={dirs[1]}")
    return dirs
