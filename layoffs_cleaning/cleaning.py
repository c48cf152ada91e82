"""End-to-end cleaning of the world layoffs dataset.

This module handles:
- In-memory composition of the four cleaning stages
- Post-clean invariant checks
- Run orchestration with per-stage snapshots and resume
- CLI entry point
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, NoReturn, Optional

import pandas as pd

from layoffs_cleaning.dedup import remove_duplicates
from layoffs_cleaning.prune import prune
from layoffs_cleaning.schema import (
    BUSINESS_COLUMNS,
    BUSINESS_KEY,
    COUNTRY,
    DATE,
    HELPER_COLUMNS,
    INDUSTRY,
    MEASURE_COLUMNS,
)
from layoffs_cleaning.staging import stage_copy
from layoffs_cleaning.standardize import DATE_ERROR_MODES, DateParseError, standardize
from layoffs_cleaning.utils.cache_utils import (
    compute_inputs_hash,
    create_run_directories,
    generate_run_id,
)
from layoffs_cleaning.utils.io_utils import (
    is_parquet_available,
    load_industry_map,
    load_settings,
    read_artifact,
    read_input_file,
    write_artifact,
)
from layoffs_cleaning.utils.logging_utils import setup_logging
from layoffs_cleaning.utils.mini_dag import MiniDAG
from layoffs_cleaning.utils.path_utils import get_config_path
from layoffs_cleaning.utils.perf_utils import StageTimer
from layoffs_cleaning.variants import audit_variants

logger = logging.getLogger(__name__)

# (stage name, snapshot written when the stage completes)
STAGES = [
    ("staging", "layoffs_staging"),
    ("deduplication", "layoffs_deduplicated"),
    ("standardization", "layoffs_standardized"),
    ("pruning", "layoffs_cleaned"),
]
STAGE_NAMES = [name for name, _ in STAGES]

# Records set aside by standardization, kept so a later resume can report them
REJECTED_DATES_ARTIFACT = "layoffs_date_rejects"


@dataclass
class PipelineResult:
    """Outcome of one pipeline run."""

    run_id: str
    cleaned: pd.DataFrame
    rejected_dates: pd.DataFrame
    variant_report: pd.DataFrame
    summary: dict[str, Any] = field(default_factory=dict)
    outputs: dict[str, str] = field(default_factory=dict)


def clean_layoffs(
    raw: pd.DataFrame,
    settings: Optional[dict[str, Any]] = None,
    variants: Optional[dict[str, str]] = None,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Run staging, deduplication, standardization and pruning in memory.

    Args:
        raw: Raw layoffs table (never modified)
        settings: Pipeline settings
        variants: Industry variant map (variant -> canonical label)

    Returns:
        Tuple of (cleaned table, rejected date records)

    """
    staged = stage_copy(raw)
    deduped = remove_duplicates(staged)
    standardized, rejected = standardize(deduped, settings, variants)
    return prune(standardized), rejected


def validate_cleaned_table(
    df: pd.DataFrame, variants: Optional[dict[str, str]] = None
) -> None:
    """Check the post-clean invariants of the layoffs table.

    Raises:
        ValueError: Listing every invariant the table violates

    """
    problems = []

    helpers = [c for c in HELPER_COLUMNS if c in df.columns]
    if helpers:
        problems.append(f"helper columns present: {helpers}")

    missing = [c for c in BUSINESS_COLUMNS if c not in df.columns]
    if missing:
        problems.append(f"business columns missing: {missing}")
        raise ValueError("Cleaned table failed validation: " + "; ".join(problems))

    dupes = int(df.duplicated(subset=BUSINESS_KEY).sum())
    if dupes:
        problems.append(f"{dupes} duplicate business keys")

    industry = df[INDUSTRY].astype("string")
    blank = int(industry.str.strip().eq("").fillna(False).sum())
    if blank:
        problems.append(f"{blank} blank industry values")

    leftover = sorted(set(industry.dropna()) & set(variants or {}))
    if leftover:
        problems.append(f"non-canonical industries: {leftover}")

    dotted = int(df[COUNTRY].astype("string").str.endswith(".").fillna(False).sum())
    if dotted:
        problems.append(f"{dotted} countries with trailing periods")

    if not pd.api.types.is_datetime64_any_dtype(df[DATE]):
        problems.append(f"date column is {df[DATE].dtype}, expected datetime")

    empty = int(df[MEASURE_COLUMNS].isna().all(axis=1).sum())
    if empty:
        problems.append(f"{empty} rows with no layoff measure")

    if problems:
        raise ValueError("Cleaned table failed validation: " + "; ".join(problems))


def _resolve_map_path(map_path: str, config_path: Optional[str]) -> str:
    """Resolve the industry map next to the settings file when relative."""
    path = Path(map_path)
    if not path.is_absolute() and config_path:
        candidate = Path(config_path).parent / path
        if candidate.exists():
            return str(candidate)
    return map_path


def _load_rejected_dates(interim_dir: Path) -> pd.DataFrame:
    """Reload the date records quarantined by a completed standardization stage."""
    try:
        saved = read_artifact(str(interim_dir / REJECTED_DATES_ARTIFACT))
    except FileNotFoundError:
        logger.warning(f"resume | rejected_dates_snapshot_missing | dir={interim_dir}")
        return pd.DataFrame(columns=BUSINESS_COLUMNS)
    return saved.astype({"source_index": "int64"}).set_index("source_index")


def _write_outputs(
    cleaned: pd.DataFrame,
    processed_dir: Path,
    settings: dict[str, Any],
) -> dict[str, str]:
    """Write the cleaned table in every configured output format."""
    name = settings["data"].get("output_name", "layoffs_cleaned")
    outputs = {}
    for fmt in settings["io"].get("output_formats", ["csv"]):
        if fmt == "csv":
            path = processed_dir / f"{name}.csv"
            cleaned.to_csv(path, index=False, date_format="%Y-%m-%d")
        elif fmt == "parquet":
            if not is_parquet_available():
                logger.warning("output | parquet_skipped | pyarrow not installed")
                continue
            path = processed_dir / f"{name}.parquet"
            cleaned.to_parquet(path, index=False)
        else:
            raise ValueError(f"Unsupported output format: {fmt}")
        outputs[fmt] = str(path)
        logger.info(f"output | written | format={fmt} | path={path}")
    return outputs


def run_pipeline(
    input_path: str,
    output_dir: str,
    config_path: Optional[str] = None,
    run_id: Optional[str] = None,
    resume_from: Optional[str] = None,
    force: bool = False,
    on_date_error: Optional[str] = None,
    log_level: Optional[str] = None,
) -> PipelineResult:
    """Run the complete layoffs cleaning pipeline.

    Every stage receives the previous stage's snapshot and returns a new
    one. A completed stage persists its snapshot under
    ``<output_dir>/interim/<run_id>/`` so a failed run can be resumed from
    the failing stage without touching earlier results.

    Args:
        input_path: Path to the raw layoffs file (CSV/XLSX)
        output_dir: Directory for interim and processed outputs
        config_path: Path to settings YAML (defaults to config/settings.yaml)
        run_id: Run ID (generated from input/config hashes when omitted)
        resume_from: Stage to resume from; needs the ``run_id`` of the earlier run
        force: Resume even when input or config changed since the earlier run
        on_date_error: Override of ``standardize.on_date_error``
        log_level: Override of ``logging.level``

    Returns:
        PipelineResult with the cleaned table and run summary

    Raises:
        ValueError: On invalid arguments or a changed input during resume
        FileNotFoundError: If the input file or a resume snapshot is missing
        DateParseError: If dates fail to parse and ``on_date_error`` is ``raise``

    """
    if resume_from is not None:
        if resume_from not in STAGE_NAMES:
            raise ValueError(f"Unknown stage '{resume_from}'. Stages: {STAGE_NAMES}")
        if not run_id:
            raise ValueError("resume_from requires the run_id of the run to resume")

    if config_path is None:
        config_path = str(get_config_path())
    settings = load_settings(config_path)

    if on_date_error is not None:
        settings["standardize"]["on_date_error"] = on_date_error
    if log_level is not None:
        settings["logging"]["level"] = log_level

    if run_id is None:
        run_id = generate_run_id([input_path], [config_path])

    interim_dir, processed_dir = create_run_directories(run_id, output_dir)

    log_cfg = settings["logging"]
    setup_logging(
        log_cfg.get("level", "INFO"),
        str(processed_dir / log_cfg["file"]) if log_cfg.get("file") else None,
        log_cfg.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
    )
    logger.info(f"Starting layoffs cleaning pipeline | run_id={run_id}")

    industry_map = load_industry_map(
        _resolve_map_path(settings["standardize"]["industry_map_path"], config_path)
    )
    variants = industry_map["variants"]

    dag = MiniDAG(interim_dir / "pipeline_state.json", run_id)
    for i, (name, artifact) in enumerate(STAGES):
        dag.register(name, deps=STAGE_NAMES[:i][-1:], artifact=artifact)

    inputs_hash = compute_inputs_hash([input_path], [config_path])
    prefer_parquet = settings["io"].get("snapshot_format", "parquet") == "parquet"

    current: Optional[pd.DataFrame] = None
    start_idx = 0
    rejected = pd.DataFrame(columns=BUSINESS_COLUMNS)
    if resume_from is not None:
        stored_hash = dag.get_input_hash()
        if stored_hash and stored_hash != inputs_hash:
            if not force:
                raise ValueError(
                    f"Input or config changed since run {run_id} started; "
                    "use force to resume anyway"
                )
            logger.warning(f"resume | input_hash_mismatch | forced | run_id={run_id}")

        start_idx = STAGE_NAMES.index(resume_from)
        previous = dag.get_previous_stage(resume_from)
        if previous is not None:
            if not dag.validate_intermediate_files(previous, interim_dir):
                raise FileNotFoundError(
                    f"Cannot resume from '{resume_from}': no snapshot for stage "
                    f"'{previous}' in {interim_dir}"
                )
            current = read_artifact(str(interim_dir / dag.get_artifact(previous)))
            logger.info(
                f"resume | loaded_snapshot | stage={previous} | rows={len(current)}"
            )
        if start_idx > STAGE_NAMES.index("standardization"):
            rejected = _load_rejected_dates(interim_dir)

    dag.update_metadata(input_path, config_path, inputs_hash, " ".join(sys.argv))

    timer = StageTimer()
    row_counts: dict[str, int] = {}

    for name, artifact in STAGES[start_idx:]:
        dag.start(name)
        try:
            with timer.track(name, logger):
                if name == "staging":
                    current = stage_copy(read_input_file(input_path))
                elif name == "deduplication":
                    current = remove_duplicates(current)
                elif name == "standardization":
                    current, rejected = standardize(current, settings, variants)
                else:
                    current = prune(current)
        except DateParseError as e:
            errors_path = processed_dir / "date_parse_errors.csv"
            e.records.to_csv(errors_path, index=True, index_label="source_index")
            logger.error(f"stage | failed | stage={name} | records written to {errors_path}")
            dag.fail(name)
            raise
        except KeyboardInterrupt:
            dag.mark_interrupted(name)
            raise
        except Exception:
            logger.exception(f"stage | failed | stage={name}")
            dag.fail(name)
            raise

        snapshot = write_artifact(current, str(interim_dir / artifact), prefer_parquet)
        if name == "standardization":
            write_artifact(
                rejected.reset_index(names="source_index"),
                str(interim_dir / REJECTED_DATES_ARTIFACT),
                prefer_parquet,
            )
        dag.complete(name)
        row_counts[name] = len(current)
        logger.info(f"stage | completed | stage={name} | rows={len(current)} | snapshot={snapshot}")

    cleaned = current
    validate_cleaned_table(cleaned, variants)

    outputs = _write_outputs(cleaned, processed_dir, settings)

    if not rejected.empty:
        errors_path = processed_dir / "date_parse_errors.csv"
        rejected.to_csv(errors_path, index=True, index_label="source_index")
        outputs["date_parse_errors"] = str(errors_path)
        logger.warning(f"output | dates_quarantined | count={len(rejected)} | path={errors_path}")

    audit_cfg = settings["variant_audit"]
    variant_report = pd.DataFrame()
    if audit_cfg.get("enable", True):
        variant_report = audit_variants(
            cleaned, audit_cfg.get("columns", ["industry"]), audit_cfg.get("threshold", 90)
        )
        audit_path = processed_dir / "variant_audit.csv"
        variant_report.to_csv(audit_path, index=False)
        outputs["variant_audit"] = str(audit_path)

    summary = {
        "run_id": run_id,
        "finished_at": datetime.now().isoformat(),
        "input_path": str(input_path),
        "config_path": str(config_path),
        "resumed_from": resume_from,
        "industry_map_version": industry_map["version"],
        "backfill_policy": settings["standardize"]["backfill_policy"],
        "on_date_error": settings["standardize"]["on_date_error"],
        "rows": row_counts,
        "rows_out": len(cleaned),
        "dates_quarantined": len(rejected),
        "variant_pairs": len(variant_report),
        "timings_sec": timer.timings,
        "outputs": outputs,
    }
    summary_path = processed_dir / "run_summary.json"
    with open(summary_path, "w") as f:
        json.dump(summary, f, indent=2)
    outputs["summary"] = str(summary_path)

    logger.info(f"Pipeline complete | run_id={run_id} | rows_out={len(cleaned)}")
    return PipelineResult(
        run_id=run_id,
        cleaned=cleaned,
        rejected_dates=rejected,
        variant_report=variant_report,
        summary=summary,
        outputs=outputs,
    )


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser whose usage errors exit with code 1."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def main() -> None:
    """Main CLI entry point."""
    parser = _ArgumentParser(
        description="Clean the world layoffs dataset: stage, deduplicate, standardize, prune",
    )
    parser.add_argument("--input", required=True, help="Raw layoffs file path (CSV/XLSX)")
    parser.add_argument("--outdir", required=True, help="Output directory path")
    parser.add_argument(
        "--config",
        default=None,
        help="Settings YAML path (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--run-id",
        help="Custom run ID (auto-generated if not specified)",
    )
    parser.add_argument(
        "--resume-from",
        choices=STAGE_NAMES,
        help="Resume the run given by --run-id from this stage",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Resume even if input/config hash changed",
    )
    parser.add_argument(
        "--on-date-error",
        choices=DATE_ERROR_MODES,
        help="Halt on unparseable dates (raise) or set them aside (quarantine)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the configured log level",
    )

    args = parser.parse_args()

    if not Path(args.input).exists():
        logger.error(f"Input file not found: {args.input}")
        sys.exit(1)
    if args.resume_from and not args.run_id:
        logger.error("--resume-from requires --run-id")
        sys.exit(1)

    try:
        run_pipeline(
            input_path=args.input,
            output_dir=args.outdir,
            config_path=args.config,
            run_id=args.run_id,
            resume_from=args.resume_from,
            force=args.force,
            on_date_error=args.on_date_error,
            log_level=args.log_level,
        )
    except DateParseError as e:
        logger.error(str(e))
        sys.exit(2)
    except KeyboardInterrupt:
        logger.warning("Pipeline interrupted by user (Ctrl+C)")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Pipeline failed: {e}")
        sys.exit(87)


if __name__ == "__main__":
    main()
