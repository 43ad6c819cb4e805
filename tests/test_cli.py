"""
Tests for the match_logs command line tool.
"""

import json
import shutil
import tempfile
import unittest
from pathlib import Path

from click.testing import CliRunner

from match_logs import match_logs
from tests.test_data.samples import JAVA_CLASS, RUST_SCENARIOS

LEVEL_FORMAT = r"^(?P<level>[A-Z]+) (?P<body>.*)$"

MULTI_LINE_LOG = """starting up
INFO Hello from main
ERROR Something failed for order-7
java.lang.RuntimeException: boom
\tat pkg.Class.method(Class.java:50)
INFO Hello, Tim!
"""


def _records(output: str):
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


class TestMatchLogs(unittest.TestCase):
    """Test cases for the match_logs command."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.source_dir = self.temp_dir / "src"
        (self.source_dir / "pkg").mkdir(parents=True)
        (self.source_dir / "main.rs").write_text(RUST_SCENARIOS)
        (self.source_dir / "pkg" / "Class.java").write_text(JAVA_CLASS)
        self.log_file = self.temp_dir / "app.log"
        self.runner = CliRunner()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def invoke(self, *args, **kwargs):
        return self.runner.invoke(
            match_logs, ["-d", str(self.source_dir), "--no-cache", "-w", "1", *args], **kwargs
        )

    def test_one_message_per_line(self):
        self.log_file.write_text("Hello from main\nHello from foo i=1\nunrelated text\n")

        result = self.invoke("-l", str(self.log_file))

        self.assertEqual(result.exit_code, 0, result.output)
        records = _records(result.output)
        self.assertEqual(len(records), 3)
        self.assertEqual(records[0]["srcRef"]["name"], "main")
        self.assertEqual(records[1]["variables"], [{"expr": "i", "value": "1"}])
        self.assertIsNone(records[2]["srcRef"])

    def test_standard_input(self):
        result = self.invoke(input="Hello from main\n")

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(_records(result.output)[0]["srcRef"]["lineNo"], 3)

    def test_multi_line_messages(self):
        self.log_file.write_text(MULTI_LINE_LOG)

        result = self.invoke("-l", str(self.log_file), "-f", LEVEL_FORMAT)

        self.assertEqual(result.exit_code, 0, result.output)
        records = _records(result.output)
        self.assertEqual([r["srcRef"]["name"] for r in records], ["main", "method", "greet"])
        self.assertEqual(records[1]["variables"], [{"expr": "name", "value": "order-7"}])
        self.assertEqual(records[1]["exceptionTrace"][0]["lineNo"], 50)
        self.assertEqual(records[2]["variables"], [
            {"expr": "salutation", "value": "Hello"},
            {"expr": "name", "value": "Tim"},
        ])

    def test_start_and_count(self):
        self.log_file.write_text(MULTI_LINE_LOG)

        result = self.invoke("-l", str(self.log_file), "-f", LEVEL_FORMAT,
                             "--start", "2", "--count", "1")

        self.assertEqual(result.exit_code, 0, result.output)
        records = _records(result.output)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]["srcRef"]["name"], "method")

    def test_output_file(self):
        self.log_file.write_text("Hello from main\n")
        output_file = self.temp_dir / "out.jsonl"

        result = self.invoke("-l", str(self.log_file), "-o", str(output_file))

        self.assertEqual(result.exit_code, 0, result.output)
        with open(output_file, encoding="utf-8") as f:
            records = [json.loads(line) for line in f]
        self.assertEqual(records[0]["srcRef"]["text"], '"Hello from main"')

    def test_unreadable_line(self):
        self.log_file.write_bytes(b"Hello from main\n\xff\xfe broken\nHello from foo i=2\n")

        result = self.invoke("-l", str(self.log_file))

        self.assertEqual(result.exit_code, 0, result.output)
        records = _records(result.output)
        self.assertEqual(len(records), 3)
        self.assertEqual(records[1]["error"]["line"], 1)
        self.assertEqual(records[2]["variables"], [{"expr": "i", "value": "2"}])

    def test_no_log_statements(self):
        empty = self.temp_dir / "empty"
        empty.mkdir()
        self.log_file.write_text("Hello from main\n")

        result = self.runner.invoke(
            match_logs, ["-d", str(empty), "--no-cache", "-l", str(self.log_file)]
        )

        self.assertEqual(result.exit_code, 1)
        self.assertIn("no log statements found", result.output)

    def test_format_never_matches(self):
        self.log_file.write_text("lowercase only\n")

        result = self.invoke("-l", str(self.log_file), "-f", LEVEL_FORMAT)

        self.assertEqual(result.exit_code, 1)
        self.assertIn("did not match any line", result.output)

    def test_invalid_format(self):
        self.log_file.write_text("Hello from main\n")

        result = self.invoke("-l", str(self.log_file), "-f", "(?P<body>.*")

        self.assertEqual(result.exit_code, 1)
        self.assertIn("invalid log format", result.output)

    def test_unknown_capture(self):
        self.log_file.write_text("Hello from main\n")

        result = self.invoke("-l", str(self.log_file), "-f", r"(?P<user>\w+) (?P<body>.*)")

        self.assertEqual(result.exit_code, 1)
        self.assertIn("unknown named capture group 'user'", result.output)

    def test_overlapping_roots(self):
        self.log_file.write_text("Hello from main\n")

        result = self.invoke("-d", str(self.source_dir / "pkg"), "-l", str(self.log_file))

        self.assertEqual(result.exit_code, 1)
        self.assertIn("overlaps", result.output)

    def test_cache_is_written(self):
        self.log_file.write_text("Hello from main\n")
        cache_dir = self.temp_dir / "cache"

        result = self.runner.invoke(match_logs, [
            "-d", str(self.source_dir), "-w", "1", "--cache-dir", str(cache_dir),
            "-l", str(self.log_file),
        ])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(len(list(cache_dir.glob("cache.*.pkl"))), 1)

        again = self.runner.invoke(match_logs, [
            "-d", str(self.source_dir), "-w", "1", "--cache-dir", str(cache_dir),
            "-l", str(self.log_file),
        ])
        self.assertEqual(again.exit_code, 0, again.output)
        self.assertEqual(_records(again.output)[0]["srcRef"]["name"], "main")

    def test_verbose(self):
        self.log_file.write_text("Hello from main\n")

        result = self.invoke("-l", str(self.log_file), "-v")

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Indexed 4 log statements", result.output)


if __name__ == '__main__':
    unittest.main()
