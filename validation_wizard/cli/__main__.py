from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import ConfigError, load_config
from ..excel.reader import SheetHeaderError, UnsupportedFileError, read_table
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, set_debug, setup_logging
from ..models.config_models import WizardConfig
from ..models.formula import FormulaError
from ..models.session_state import Phase
from ..services.correction import PhaseStats
from ..services.detection import DetectionCancelled, detect
from ..services.rule_model import RuleConflict, ValidationConfigError
from ..services.session import SessionStateError, ValidationSession
from ..services.store import TemplateStoreError
from ..services.summary import render_summary_line

"""CLI entrypoint: batch validation of one upload.

- Load .env and the YAML config
- Read the source file through the file template store
- Run generic then custom detection and write the JSON Lines report
- Log one SUMMARY line; optionally export the (transformed) file when clean
"""

EXIT_SUCCESS = 0
EXIT_ERRORS_DETECTED = 2
EXIT_FATAL = 1

DEFAULT_CONFIG = "config/wizard.yml"


def _load_env_file(path: Path, override: bool = False) -> None:
    """Load .env if present; a broken file only warns."""
    if not path.exists():
        return
    try:
        load_dotenv(dotenv_path=path, override=override)
    except OSError as e:
        print(f"WARNING: failed to load .env via python-dotenv: {e}")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Validate an uploaded CSV / Excel file against column rules")
    p.add_argument("--config", help=f"Config YAML (default ${{VALIDATION_WIZARD_CONFIG}} or {DEFAULT_CONFIG})")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print headers & first rows then exit")
    p.add_argument("--transform", action="store_true", help="Apply Transform-Date rules on export")
    p.add_argument("--export", action="store_true", help="Write the corrected file when no errors remain")
    return p.parse_args(argv)


def _inspect_data(cfg: WizardConfig) -> int:
    path = Path(cfg.source_file)
    if not path.exists():
        print(f"inspect: file not found: {path}")
        return EXIT_FATAL
    try:
        sheet = read_table(path, cfg.sheet_name, header_row=cfg.header_row, null_sentinels=cfg.null_sentinels)
    except (SheetHeaderError, UnsupportedFileError, ValueError, OSError) as e:
        print(f"inspect: read_error: {e}")
        return EXIT_FATAL
    print(f"FILE: {path.name}")
    print(f"  SHEET: {sheet.sheet_name or '-'} cols={sheet.columns}")
    print("    sample_rows=", [r.values for r in sheet.rows[:3]])
    return EXIT_SUCCESS


def _export(session: ValidationSession, apply_transform: bool, logger: logging.Logger) -> None:
    # generic_detected -> generic_resolved -> custom_detected -> custom_resolved -> transform_review
    for _ in range(4):
        session.advance()
    result = session.finalize(apply_transform=apply_transform)
    logger.info(f"corrected file: {result.corrected_file_path}")
    if result.transformed_file_path:
        logger.info(f"transformed file: {result.transformed_file_path}")


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # [] が渡されたときに sys.argv を読まないよう None のみ判定
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"))

    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    config_path = Path(args.config or os.getenv("VALIDATION_WIZARD_CONFIG") or DEFAULT_CONFIG)
    try:
        cfg = load_config(config_path)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(cfg)

    try:
        session = ValidationSession.from_config(cfg, show_progress=True)
    except TemplateStoreError as e:
        logger.error(f"store: {e}")
        return EXIT_FATAL
    except (RuleConflict, FormulaError, ValueError) as e:
        logger.error(f"config: rules: {e}")
        return EXIT_FATAL

    logger.info(f"validating template={cfg.template_id} file={Path(cfg.source_file).name} rows={len(session.rows)}")

    try:
        generic = session.detect_generic()
        custom = detect(
            session.rule_set,
            session.rows,
            Phase.CUSTOM,
            batch_size=cfg.batch_size,
            show_progress=True,
        )
    except ValidationConfigError as e:
        logger.error(f"config: rules: {e}")
        return EXIT_FATAL
    except DetectionCancelled as e:
        logger.error(f"detection: {e}")
        return EXIT_FATAL

    report = ErrorLogBuffer()
    sheet = cfg.sheet_name or ""
    report.extend_from_index(cfg.template_id, sheet, Phase.GENERIC, generic.index)
    report.extend_from_index(cfg.template_id, sheet, Phase.CUSTOM, custom.index)
    report_path = report.flush()
    if report_path is not None:
        logger.info(f"validation report: {report_path}")

    for phase_name, index in (("generic", generic.index), ("custom", custom.index)):
        for row, text in index.reasons_by_row().items():
            logger.debug(f"{phase_name} row={row}: {text}")

    stats = {
        Phase.GENERIC: PhaseStats(generic.rules_applied, generic.errors_detected, 0),
        Phase.CUSTOM: PhaseStats(custom.rules_applied, custom.errors_detected, 0),
    }
    summary_line = render_summary_line(len(session.rows), stats)
    log_summary(summary_line[len("SUMMARY "):])

    if generic.errors_detected or custom.errors_detected:
        if args.export:
            logger.warning("export skipped: errors detected")
        return EXIT_ERRORS_DETECTED

    if args.export:
        try:
            _export(session, args.transform, logger)
        except (TemplateStoreError, SessionStateError) as e:
            logger.error(f"export: {e}")
            return EXIT_FATAL
    return EXIT_SUCCESS


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
