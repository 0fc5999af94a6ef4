"""Command-line interface for the Steam roster enricher."""

from __future__ import annotations

import argparse
import logging
import os
import shlex
import sys
from datetime import datetime
from pathlib import Path

from .clients import SteamOwnershipClient
from .config import EnricherConfig
from .errors import ProviderError, SetupError
from .pipelines.batch_driver import ThrottleGuard
from .pipelines.batch_pipeline import (
    RunStatus,
    describe_progress,
    reset_batch,
    resume_batch,
    run_batch,
)
from .pipelines.context import PipelineContext
from .pipelines.decisions import AutoDecision, ConsoleDecision, UserDecision
from .schema import BatchKind
from .storage.table_store import CsvTableStore
from .utils.utilities import RunPaths, column_index, load_credentials


def setup_logging(log_file: Path) -> None:
    """Configure logging to both console and file."""
    log_file.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(
        "%(asctime)s.%(msecs)03d - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    # File handler
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)

    # Root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Silence verbose HTTP debug logs by default
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)

    logging.info(f"Logging to file: {log_file}")


def _default_log_file(*, command_name: str, logs_dir: Path) -> Path:
    logs_dir.mkdir(parents=True, exist_ok=True)

    now = datetime.now()
    stamp = now.strftime("%Y%m%d-%H%M%S") + f".{now.microsecond // 1000:03d}"
    candidate = logs_dir / f"log-{stamp}-{command_name}.log"
    if not candidate.exists():
        return candidate

    for i in range(2, 1000):
        p = logs_dir / f"log-{stamp}-{command_name}-{i}.log"
        if not p.exists():
            return p
    return logs_dir / f"log-{stamp}-{command_name}-{os.getpid()}.log"


def _prepare_run(args: argparse.Namespace, *, command_name: str) -> RunPaths:
    run_dir = args.run_dir or (Path.cwd() / "data")
    run_paths = RunPaths.from_run_dir(run_dir)
    run_paths.ensure()
    setup_logging(
        args.log_file or _default_log_file(command_name=command_name, logs_dir=run_paths.logs_dir)
    )
    if args.debug:
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)
        for handler in root_logger.handlers:
            handler.setLevel(logging.DEBUG)
        logging.getLogger("urllib3").setLevel(logging.DEBUG)

    argv = " ".join(shlex.quote(a) for a in sys.argv)
    logging.info(f"Invocation: {argv}")
    return run_paths


def _load_config(
    args: argparse.Namespace, run_paths: RunPaths, kind: BatchKind | None
) -> EnricherConfig:
    credentials_path = args.credentials or run_paths.credentials_path
    if credentials_path.exists():
        credentials = load_credentials(credentials_path)
    else:
        logging.warning(f"Credentials file not found: {credentials_path}")
        credentials = {}
    cfg = EnricherConfig.from_credentials(
        credentials,
        target_app_id=getattr(args, "app_id", None),
        strict_ids=True if getattr(args, "strict_ids", False) else None,
    )
    check_every = getattr(args, "check_every", None)
    return cfg.with_throttle(
        row_delay_s=getattr(args, "delay", None),
        time_budget_s=getattr(args, "budget", None),
        ownership_check_every_n=check_every if kind == BatchKind.OWNERSHIP else None,
        reputation_check_every_n=check_every if kind == BatchKind.REPUTATION else None,
    )


def _decision_from_args(args: argparse.Namespace) -> UserDecision:
    id_column = None
    if getattr(args, "id_column", None):
        try:
            id_column = column_index(args.id_column)
        except ValueError as e:
            raise SystemExit(str(e)) from e
    confirm_switch = bool(getattr(args, "yes", False))
    if args.auto_continue or args.auto_pause or not sys.stdin.isatty():
        return AutoDecision(
            continue_on_budget=not args.auto_pause,
            confirm_switch=confirm_switch,
            id_column=id_column,
        )
    return ConsoleDecision(id_column=id_column, confirm_switch=confirm_switch)


def _command_batch(args: argparse.Namespace, *, kind: BatchKind, resume: bool) -> None:
    run_paths = _prepare_run(args, command_name=f"{'resume-' if resume else ''}{kind}")
    config = _load_config(args, run_paths, kind)
    ctx = PipelineContext(run_paths=run_paths, config=config)
    decision = _decision_from_args(args)
    verb = "resume" if resume else "batch"
    try:
        table = CsvTableStore(args.table)
        processor = ctx.build_processor(kind, table)
    except SetupError as e:
        logging.error(f"[BATCH] {kind}: setup failed: {e}")
        decision.notify(f"✖ {kind} {verb} aborted: {e}")
        raise SystemExit(1) from e

    throttle = ThrottleGuard.for_kind(config.throttle, kind)
    common = {
        "table": table,
        "processor": processor,
        "cursor": ctx.cursor(),
        "decision": decision,
        "throttle": throttle,
        "end_row": args.end_row,
    }
    if resume:
        report = resume_batch(**common)
    else:
        report = run_batch(start_row=args.start_row, **common)

    stats = getattr(getattr(processor, "provider", None), "format_stats", None)
    if callable(stats):
        logging.info(f"[{kind.value.upper()}] Request stats: {stats()}")
    if report.status == RunStatus.ABORTED:
        raise SystemExit(1)


def _command_ownership(args: argparse.Namespace) -> None:
    _command_batch(args, kind=BatchKind.OWNERSHIP, resume=False)


def _command_reputation(args: argparse.Namespace) -> None:
    _command_batch(args, kind=BatchKind.REPUTATION, resume=False)


def _command_resume(args: argparse.Namespace) -> None:
    _command_batch(args, kind=BatchKind(args.kind), resume=True)


def _command_reset(args: argparse.Namespace) -> None:
    run_paths = _prepare_run(args, command_name="reset")
    ctx = PipelineContext(run_paths=run_paths, config=EnricherConfig())
    logging.info(reset_batch(BatchKind(args.kind), ctx.cursor()))


def _command_status(args: argparse.Namespace) -> None:
    run_paths = _prepare_run(args, command_name="status")
    ctx = PipelineContext(run_paths=run_paths, config=EnricherConfig())
    for line in describe_progress(ctx.cursor()):
        logging.info(line)


def _command_check_key(args: argparse.Namespace) -> None:
    run_paths = _prepare_run(args, command_name="check-key")
    config = _load_config(args, run_paths, None)
    if not config.steam_api_key:
        raise SystemExit("Missing steam.api_key in credentials")
    client = SteamOwnershipClient(api_key=config.steam_api_key)
    try:
        ok = client.validate_api_key()
    except ProviderError as e:
        raise SystemExit(f"Could not verify the Steam API key: {e}") from e
    if not ok:
        raise SystemExit("✖ Steam rejected the API key")
    logging.info("✔ Steam API key is valid")


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        raise SystemExit(
            "Missing command. Use one of: ownership, reputation, resume, reset, status, "
            "check-key. Run `steam-roster-enricher --help` for usage."
        )

    parser = argparse.ArgumentParser(description="Enrich a table of Steam IDs, resumably")
    sub = parser.add_subparsers(dest="command", required=True)

    p_common = argparse.ArgumentParser(add_help=False)
    p_common.add_argument(
        "--run-dir",
        type=Path,
        help="Run directory holding credentials.yaml, state/ and logs/ (default: ./data)",
    )
    p_common.add_argument(
        "--credentials", type=Path, help="Credentials YAML (default: <run-dir>/credentials.yaml)"
    )
    p_common.add_argument(
        "--log-file",
        type=Path,
        help="Log file path (default: <run-dir>/logs/log-<timestamp>-<command>.log)",
    )
    p_common.add_argument(
        "--debug", action="store_true", help="Enable DEBUG logging (default: INFO)"
    )

    p_batch = argparse.ArgumentParser(add_help=False)
    p_batch.add_argument("--end-row", type=int, help="Stop before this data row (0-based)")
    p_batch.add_argument(
        "--id-column", type=str, help="Column letter holding the Steam IDs (default: detect)"
    )
    p_batch.add_argument("--app-id", type=int, help="Target app id (overrides credentials)")
    p_batch.add_argument("--delay", type=float, help="Seconds to wait between rows")
    p_batch.add_argument("--budget", type=float, help="Soft time budget in seconds")
    p_batch.add_argument("--check-every", type=int, help="Rows between time budget checks")
    p_batch.add_argument(
        "--strict-ids",
        action="store_true",
        help="Skip identifiers that are not 17-digit Steam IDs",
    )
    mode = p_batch.add_mutually_exclusive_group()
    mode.add_argument(
        "--auto-continue",
        action="store_true",
        help="Keep going when the time budget is reached (no prompt)",
    )
    mode.add_argument(
        "--auto-pause",
        action="store_true",
        help="Pause when the time budget is reached (no prompt)",
    )

    p_own = sub.add_parser(
        "ownership",
        help="Start a fresh ownership/playtime batch (discards saved ownership progress)",
        parents=[p_common, p_batch],
    )
    p_own.add_argument("table", type=Path, help="CSV table with a Steam ID column")
    p_own.add_argument("--start-row", type=int, default=0, help="First data row (default: 0)")
    p_own.set_defaults(_fn=_command_ownership)

    p_rep = sub.add_parser(
        "reputation",
        help="Start a fresh reputation/ban batch (discards saved reputation progress)",
        parents=[p_common, p_batch],
    )
    p_rep.add_argument("table", type=Path, help="CSV table with a Steam ID column")
    p_rep.add_argument("--start-row", type=int, default=0, help="First data row (default: 0)")
    p_rep.set_defaults(_fn=_command_reputation)

    p_resume = sub.add_parser(
        "resume",
        help="Continue a paused or interrupted batch after its last completed row",
        parents=[p_common, p_batch],
    )
    p_resume.add_argument("kind", choices=[k.value for k in BatchKind])
    p_resume.add_argument("table", type=Path, help="CSV table to continue on")
    p_resume.add_argument(
        "--yes",
        action="store_true",
        help="Confirm continuing on a different table than the saved one",
    )
    p_resume.set_defaults(_fn=_command_resume)

    p_reset = sub.add_parser("reset", help="Clear saved progress", parents=[p_common])
    p_reset.add_argument("kind", choices=[k.value for k in BatchKind])
    p_reset.set_defaults(_fn=_command_reset)

    p_status = sub.add_parser("status", help="Show saved progress", parents=[p_common])
    p_status.set_defaults(_fn=_command_status)

    p_key = sub.add_parser("check-key", help="Validate the Steam Web API key", parents=[p_common])
    p_key.set_defaults(_fn=_command_check_key)

    ns = parser.parse_args(argv)
    ns._fn(ns)
    return


if __name__ == "__main__":
    main()
