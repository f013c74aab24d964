from __future__ import annotations

import argparse
import logging
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

from dotenv import load_dotenv

from .checkpoints import PostgresRecorder, ensure_schema, list_checkpoints
from .config import Settings, load_settings
from .connector_base import Connector
from .db import close, connect, open_connection
from .engine import Engine
from .errors import BoundaryOverflowError, IngestionError, RecorderError, WriteError
from .logging_utils import configure_logging, get_logger, log_json
from .models import RunStats
from .recorders import FileRecorder, MemoryRecorder, ProgressRecorder
from .registry import build_connectors, schedule_minutes
from .storage import PostgresWriter
from .writers import StdoutWriter, Writer

WRITERS = ("stdout", "postgres")
RECORDERS = ("file", "postgres", "memory")


def progress_path(settings: Settings, connector_name: str) -> Path:
    return Path(settings.progress_dir) / f"{connector_name}-progress.txt"


@contextmanager
def open_sinks(
    settings: Settings,
    connector_name: str,
    writer_kind: str,
    recorder_kind: str,
    memory: MemoryRecorder | None = None,
) -> Iterator[tuple[Writer, ProgressRecorder]]:
    conn = None
    if "postgres" in (writer_kind, recorder_kind):
        if not settings.database_url:
            raise RuntimeError("Missing DATABASE_URL (or POSTGRES_DSN).")
        try:
            conn = open_connection(settings.database_url)
        except ImportError:
            raise
        except Exception as e:
            error = WriteError if writer_kind == "postgres" else RecorderError
            raise error(f"cannot connect to database: {e}") from e
    try:
        writer: Writer
        if writer_kind == "postgres":
            writer = PostgresWriter(conn, table=f"trades_{connector_name}")
        else:
            writer = StdoutWriter()

        recorder: ProgressRecorder
        if recorder_kind == "postgres":
            try:
                ensure_schema(conn)
            except Exception as e:
                raise RecorderError(f"cannot create checkpoint table: {e}") from e
            recorder = PostgresRecorder(conn, connector_name)
        elif recorder_kind == "memory":
            recorder = memory if memory is not None else MemoryRecorder()
        else:
            recorder = FileRecorder(progress_path(settings, connector_name))

        yield writer, recorder
    finally:
        if conn is not None:
            close(conn)


def supervise(
    run_once: Callable[[], RunStats],
    connector_name: str,
    retry_interval_sec: float,
    sleep: Callable[[float], None] = time.sleep,
) -> RunStats:
    """Call run_once until it succeeds, pausing after each failure.

    Progress is persisted by the engine, so every attempt resumes where the
    previous one stopped. A boundary overflow repeats identically on every
    attempt and is raised instead.
    """
    logger = get_logger()
    attempt = 0
    while True:
        attempt += 1
        try:
            return run_once()
        except BoundaryOverflowError as e:
            log_json(logger, logging.ERROR, "run_aborted", connector=connector_name, attempt=attempt, error=str(e))
            raise
        except IngestionError as e:
            log_json(
                logger,
                logging.WARNING,
                "run_failed_retrying",
                connector=connector_name,
                attempt=attempt,
                error_type=type(e).__name__,
                error=str(e),
                retry_in_sec=retry_interval_sec,
            )
            sleep(retry_interval_sec)


def run_connector(
    settings: Settings,
    connector: Connector,
    writer_kind: str = "stdout",
    recorder_kind: str = "file",
    supervised: bool = False,
) -> RunStats:
    engine = Engine(connector)
    # Outlives the attempts, like a progress file.
    memory = MemoryRecorder() if recorder_kind == "memory" else None

    def run_once() -> RunStats:
        # Fresh sinks per attempt; a dropped database connection is not reused.
        with open_sinks(settings, connector.name, writer_kind, recorder_kind, memory) as (writer, recorder):
            return engine.run(writer, recorder)

    if supervised:
        return supervise(run_once, connector.name, settings.retry_interval_sec)
    return run_once()


def _pick(connectors: dict[str, Connector], name: str) -> Connector:
    if name not in connectors:
        raise SystemExit(f"Unknown connector: {name}. Available: {', '.join(connectors.keys())}")
    return connectors[name]


def cmd_run(settings: Settings, name: str, writer_kind: str, recorder_kind: str, supervised: bool) -> int:
    logger = get_logger()
    connector = _pick(build_connectors(settings), name)
    try:
        stats = run_connector(settings, connector, writer_kind, recorder_kind, supervised)
    except IngestionError as e:
        log_json(logger, logging.ERROR, "run_failed", connector=name, error_type=type(e).__name__, error=str(e))
        return 1
    log_json(logger, logging.INFO, "finished", connector=name, stats=stats.__dict__)
    return 0


def cmd_run_all(settings: Settings, writer_kind: str, recorder_kind: str) -> int:
    """One thread per connector, each supervised independently."""
    logger = get_logger()
    connectors = build_connectors(settings)
    failed: dict[str, str] = {}

    def worker(connector: Connector) -> None:
        try:
            run_connector(settings, connector, writer_kind, recorder_kind, supervised=True)
        except Exception as e:
            failed[connector.name] = str(e)
            log_json(logger, logging.ERROR, "worker_failed", connector=connector.name, error=str(e))

    threads = [
        threading.Thread(target=worker, args=(c,), name=f"ingest-{name}", daemon=True)
        for name, c in connectors.items()
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    log_json(logger, logging.INFO, "finish_all", connectors=list(connectors), failed=failed)
    return 1 if failed else 0


def cmd_status(settings: Settings, recorder_kind: str, name: str | None) -> list[tuple[str, Any]]:
    if recorder_kind == "postgres":
        if not settings.database_url:
            raise RuntimeError("Missing DATABASE_URL (or POSTGRES_DSN).")
        with connect(settings.database_url) as conn:
            ensure_schema(conn)
            return [(r[0], r[1]) for r in list_checkpoints(conn, name)]

    names = [name] if name else sorted(build_connectors(settings))
    return [(n, FileRecorder(progress_path(settings, n)).read() or None) for n in names]


def schedule_loop(settings: Settings, writer_kind: str, recorder_kind: str) -> None:
    from apscheduler.schedulers.blocking import BlockingScheduler
    from apscheduler.triggers.interval import IntervalTrigger

    logger = get_logger()
    connectors = build_connectors(settings)
    cadences = schedule_minutes(settings)

    sched = BlockingScheduler(timezone="UTC")

    def job(name: str) -> None:
        try:
            stats = run_connector(settings, connectors[name], writer_kind, recorder_kind)
            log_json(logger, logging.INFO, "scheduled_job_complete", connector=name, stats=stats.__dict__)
        except Exception as e:
            log_json(logger, logging.ERROR, "scheduled_job_failed", connector=name, error_type=type(e).__name__, error=str(e))

    for name in connectors:
        sched.add_job(job, IntervalTrigger(minutes=cadences[name]), args=[name], id=name, max_instances=1, coalesce=True)

    log_json(logger, logging.INFO, "scheduler_started", schedules_minutes=cadences)
    sched.start()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trade_ingestion")
    sub = parser.add_subparsers(dest="cmd", required=True)

    ingest = sub.add_parser("ingest", help="Ingestion commands")
    ingest_sub = ingest.add_subparsers(dest="ingest_cmd", required=True)

    def sink_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--writer", choices=WRITERS, default="stdout")
        p.add_argument("--recorder", choices=RECORDERS, default="file")

    runp = ingest_sub.add_parser("run", help="Run one connector to its end cursor")
    runp.add_argument("connector", type=str)
    runp.add_argument("--supervise", action="store_true", help="Retry failed runs after RETRY_INTERVAL_SEC")
    sink_args(runp)

    allp = ingest_sub.add_parser("run-all", help="Run every connector in its own thread, supervised")
    sink_args(allp)

    statp = ingest_sub.add_parser("status", help="Show recorded cursors")
    statp.add_argument("connector", type=str, nargs="?", default=None)
    statp.add_argument("--recorder", choices=("file", "postgres"), default="file")

    schp = ingest_sub.add_parser("schedule", help="Run APScheduler loop")
    sink_args(schp)

    return parser


def main(argv=None) -> int:
    load_dotenv(override=False)
    settings = load_settings()
    configure_logging(settings.log_level)

    args = build_parser().parse_args(argv)

    if args.ingest_cmd == "schedule":
        schedule_loop(settings, args.writer, args.recorder)
        return 0

    if args.ingest_cmd == "status":
        for name, cursor in cmd_status(settings, args.recorder, args.connector):
            print(f"{name}  cursor={cursor}")
        return 0

    if args.ingest_cmd == "run-all":
        return cmd_run_all(settings, args.writer, args.recorder)

    if args.ingest_cmd == "run":
        return cmd_run(settings, args.connector, args.writer, args.recorder, args.supervise)

    return 0
