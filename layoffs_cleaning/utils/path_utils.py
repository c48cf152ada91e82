"""Path utilities for the layoffs cleaning pipeline."""

from pathlib import Path
from typing import Optional


def get_project_root() -> Path:
    """Get the project root directory.

    Returns:
        Path to the project root

    """
    return Path(__file__).parent.parent.parent


def get_config_path(filename: str = "settings.yaml") -> Path:
    """Get the path to a config file.

    Looks for a ``config`` directory holding ``filename`` in the current
    directory and its parents, then falls back to the project root.

    Args:
        filename: Name of the config file (default: settings.yaml)

    Returns:
        Path to the config file

    """
    current = Path.cwd()
    for parent in [current] + list(current.parents):
        candidate = parent / "config" / filename
        if candidate.exists():
            return candidate

    return get_project_root() / "config" / filename


def _require_run_id(run_id: Optional[str]) -> str:
    if not run_id or not run_id.strip():
        raise ValueError("run_id cannot be empty")
    return run_id


def get_interim_dir(run_id: str, output_dir: Optional[str] = None) -> Path:
    """Get the interim (per-stage snapshot) directory for a run.

    Args:
        run_id: The run ID
        output_dir: Optional output directory override (defaults to data)

    Returns:
        Path to the interim directory

    Raises:
        ValueError: If run_id is empty or None

    """
    run_id = _require_run_id(run_id)
    base = Path(output_dir) if output_dir else Path("data")
    return base / "interim" / run_id


def get_processed_dir(run_id: str, output_dir: Optional[str] = None) -> Path:
    """Get the processed (final output) directory for a run.

    Raises:
        ValueError: If run_id is empty or None

    """
    run_id = _require_run_id(run_id)
    base = Path(output_dir) if output_dir else Path("data")
    return base / "processed" / run_id
