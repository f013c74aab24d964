import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

from trade_ingestion.config import Settings
from trade_ingestion.cursor import OrdinalCursor
from trade_ingestion.errors import BoundaryOverflowError, TransportError
from trade_ingestion.ingest import build_parser, cmd_status, open_sinks, progress_path, run_connector, supervise
from trade_ingestion.models import RunStats
from trade_ingestion.recorders import FileRecorder, MemoryRecorder
from trade_ingestion.writers import StdoutWriter

from tests.fakes import DeadConn, FakeConn, IdListConnector


class TestSupervise(unittest.TestCase):
    def test_retries_until_success(self):
        outcomes = [TransportError("timeout"), TransportError("502"), RunStats(pages=1)]
        slept = []

        def run_once():
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        stats = supervise(run_once, "liquid", 2.5, sleep=slept.append)

        self.assertEqual(stats.pages, 1)
        self.assertEqual(slept, [2.5, 2.5])

    def test_boundary_overflow_is_not_retried(self):
        calls = []

        def run_once():
            calls.append(1)
            raise BoundaryOverflowError("1000 trades at one second")

        with self.assertRaises(BoundaryOverflowError):
            supervise(run_once, "liquid", 1.0, sleep=lambda s: self.fail("slept"))
        self.assertEqual(len(calls), 1)

    def test_programming_errors_propagate(self):
        def run_once():
            raise AttributeError("bug")

        with self.assertRaises(AttributeError):
            supervise(run_once, "bitmex", 1.0, sleep=lambda s: None)


class TestSinks(unittest.TestCase):
    def setUp(self):
        self._td = tempfile.TemporaryDirectory()
        self.settings = Settings(progress_dir=self._td.name)

    def tearDown(self):
        self._td.cleanup()

    def test_file_recorder_and_stdout_writer_by_default(self):
        with open_sinks(self.settings, "bitflyer", "stdout", "file") as (writer, recorder):
            self.assertIsInstance(writer, StdoutWriter)
            self.assertIsInstance(recorder, FileRecorder)
            self.assertEqual(recorder.path, Path(self._td.name) / "bitflyer-progress.txt")

    def test_memory_recorder(self):
        with open_sinks(self.settings, "liquid", "stdout", "memory") as (_, recorder):
            self.assertIsInstance(recorder, MemoryRecorder)

    def test_postgres_needs_database_url(self):
        with self.assertRaises(RuntimeError):
            with open_sinks(self.settings, "liquid", "postgres", "file"):
                pass

    def test_run_connector_persists_progress_file(self):
        out = io.StringIO()
        with redirect_stdout(out):
            stats = run_connector(self.settings, IdListConnector([4, 8, 10, 11, 15, 17, 19], start=10, end=16))

        self.assertEqual(stats.written, 4)
        lines = [json.loads(line) for line in out.getvalue().splitlines()]
        self.assertEqual([row["id"] for row in lines], ["10", "11", "15", "17"])
        self.assertEqual(progress_path(self.settings, "mock").read_text(encoding="utf-8"), '{"current":18}')

    def test_supervised_postgres_run_reconnects_after_dropped_connection(self):
        settings = Settings(progress_dir=self._td.name, database_url="postgresql://db/trades", retry_interval_sec=0)
        dead = DeadConn(fail_on="INSERT INTO trades_mock")
        live = FakeConn()
        connector = IdListConnector([4, 8, 10, 11, 15, 17, 19], start=10, end=16)

        with mock.patch("trade_ingestion.ingest.open_connection", side_effect=[dead, live]) as opened:
            stats = run_connector(settings, connector, writer_kind="postgres", recorder_kind="file", supervised=True)

        self.assertEqual(opened.call_count, 2)
        self.assertTrue(dead.closed)
        self.assertTrue(live.closed)
        self.assertEqual(stats.written, 4)
        self.assertEqual([row[0] for _, rows in live.executed_many for row in rows], ["10", "11", "15", "17"])
        self.assertEqual(progress_path(settings, "mock").read_text(encoding="utf-8"), '{"current":18}')

    def test_supervised_run_retries_refused_connection(self):
        settings = Settings(progress_dir=self._td.name, database_url="postgresql://db/trades", retry_interval_sec=0)
        live = FakeConn()
        connector = IdListConnector([10, 11], start=10, end=11)

        with mock.patch(
            "trade_ingestion.ingest.open_connection",
            side_effect=[ConnectionRefusedError("refused"), live],
        ):
            stats = run_connector(settings, connector, writer_kind="postgres", recorder_kind="file", supervised=True)

        self.assertEqual(stats.written, 2)

    def test_memory_progress_survives_supervised_retries(self):
        connector = IdListConnector([4, 8, 10, 11, 15, 17, 19], start=10, end=16)
        original_fetch = connector.fetch
        failures = [TransportError("502")]

        def fetch(cursor, limit):
            if cursor.value == 12 and failures:
                raise failures.pop()
            return original_fetch(cursor, limit)

        connector.fetch = fetch
        settings = Settings(progress_dir=self._td.name, retry_interval_sec=0)
        with redirect_stdout(io.StringIO()):
            run_connector(settings, connector, recorder_kind="memory", supervised=True)

        self.assertEqual(connector.fetched_at, [OrdinalCursor(10), OrdinalCursor(12)])

    def test_status_reads_progress_files(self):
        FileRecorder(progress_path(self.settings, "liquid")).out("2019-01-01T01:02:00Z")
        self.assertEqual(cmd_status(self.settings, "file", "liquid"), [("liquid", "2019-01-01T01:02:00Z")])
        status = dict(cmd_status(self.settings, "file", None))
        self.assertEqual(status, {"bitflyer": None, "bitmex": None, "liquid": "2019-01-01T01:02:00Z"})


class TestPostgresStatus(unittest.TestCase):
    def test_status_reads_checkpoint_table_and_closes(self):
        conn = FakeConn(rows=[("bitflyer", '{"current":1}', None)])
        settings = Settings(database_url="postgresql://db/trades")

        with mock.patch("trade_ingestion.db._connect", return_value=conn):
            status = cmd_status(settings, "postgres", None)

        self.assertEqual(status, [("bitflyer", '{"current":1}')])
        self.assertIn("CREATE TABLE IF NOT EXISTS ingestion_checkpoints", conn.executed[0][0])
        self.assertTrue(conn.closed)


class TestParser(unittest.TestCase):
    def test_run_command(self):
        args = build_parser().parse_args(["ingest", "run", "bitmex", "--writer", "postgres", "--recorder", "postgres", "--supervise"])
        self.assertEqual((args.ingest_cmd, args.connector, args.writer, args.recorder, args.supervise), ("run", "bitmex", "postgres", "postgres", True))

    def test_defaults(self):
        args = build_parser().parse_args(["ingest", "run-all"])
        self.assertEqual((args.writer, args.recorder), ("stdout", "file"))

    def test_rejects_unknown_writer(self):
        with redirect_stdout(io.StringIO()), self.assertRaises(SystemExit):
            build_parser().parse_args(["ingest", "run", "liquid", "--writer", "kafka"])


if __name__ == "__main__":
    unittest.main()
