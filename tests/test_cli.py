import contextlib
import io
import json
import tempfile
import unittest
from pathlib import Path

from cadence.cli import main


class CliTests(unittest.TestCase):
    def _run(self, argv):
        stdout, stderr = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            code = main(argv)
        return code, stdout.getvalue(), stderr.getvalue()

    def test_next_time(self):
        code, out, _ = self._run(["next-time", "--frequency", "weekly", "--anchor", "2024-01-01 00:00:00"])
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), "2024-01-08 00:00:00")

    def test_next_time_unknown_frequency(self):
        code, out, err = self._run(["next-time", "--frequency", "yearly", "--anchor", "2024-01-01 00:00:00"])
        self.assertEqual(code, 2)
        self.assertEqual(out, "")
        self.assertIn("unknown frequency", err)

    def test_run_reports_pending_tasks(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "cadence.yaml"
            path.write_text(
                "log_level: WARNING\n"
                "tasks:\n"
                "  - name: later\n"
                "    frequency: monthly\n"
                "    begin_at: '2999-01-01 00:00:00'\n",
                encoding="utf-8",
            )
            code, out, _ = self._run(["run", "--config", str(path), "--duration", "0"])

        self.assertEqual(code, 0)
        summary = json.loads(out)
        self.assertEqual(summary["fired"], {"later": 0})
        self.assertEqual(summary["pending"], 1)
        self.assertEqual(summary["next_due"], "2999-02-01 00:00:00")

    def test_run_rejects_unknown_frequency(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "cadence.yaml"
            path.write_text("tasks:\n  - name: bad\n    frequency: hourlyish\n", encoding="utf-8")
            code, _, err = self._run(["run", "--config", str(path), "--duration", "0"])

        self.assertEqual(code, 2)
        self.assertIn("hourlyish", err)

    def test_rejects_unknown_log_level_flag(self):
        with self.assertRaises(SystemExit) as ctx:
            self._run(["--log-level", "chatty", "next-time", "--frequency", "hourly"])
        self.assertEqual(ctx.exception.code, 2)

    def test_log_level_flag_is_case_insensitive(self):
        code, out, _ = self._run(
            ["--log-level", "debug", "next-time", "--frequency", "daily", "--anchor", "2024-01-01 00:00:00"]
        )
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), "2024-01-02 00:00:00")

    def test_rejects_malformed_duration(self):
        with self.assertRaises(SystemExit) as ctx:
            self._run(["run", "--config", "cadence.yaml", "--duration", "5w"])
        self.assertEqual(ctx.exception.code, 2)

    def test_run_reports_bad_log_level_in_config(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "cadence.yaml"
            path.write_text("log_level: chatty\n", encoding="utf-8")
            code, out, err = self._run(["run", "--config", str(path), "--duration", "1s"])

        self.assertEqual(code, 2)
        self.assertEqual(out, "")
        self.assertIn("unknown log level", err)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
