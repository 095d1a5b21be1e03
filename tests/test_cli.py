"""Tests for the CLI module."""

import argparse
import io
import os
import shutil
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch

from sambackup import cli
from sambackup.backup import SnapshotInfo
from sambackup.cli import create_parser, main
from sambackup.storage import EvidenceItem, Person, SQLiteStore

PASSWORD = "cli test password"


class TestArgumentParser(unittest.TestCase):
    """Tests for argument parser creation."""

    def setUp(self) -> None:
        self.parser = create_parser()

    def test_parser_creation(self) -> None:
        """Test parser is created successfully."""
        self.assertIsInstance(self.parser, argparse.ArgumentParser)
        self.assertEqual(self.parser.prog, "sam-backup")

    def test_version_argument(self) -> None:
        """Test --version exits cleanly."""
        with redirect_stdout(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                self.parser.parse_args(["--version"])
        self.assertEqual(ctx.exception.code, 0)

    def test_no_command_defaults(self) -> None:
        """Test parsing with no command."""
        args = self.parser.parse_args([])

        self.assertIsNone(args.command)
        self.assertEqual(args.verbose, 0)
        self.assertFalse(args.quiet)
        self.assertIsNone(args.config)

    def test_verbose_flag(self) -> None:
        """Test -v can be repeated."""
        args = self.parser.parse_args(["-vv", "info"])

        self.assertEqual(args.verbose, 2)

    def test_export_command(self) -> None:
        """Test export options."""
        args = self.parser.parse_args(["export", "-o", "/tmp/out", "--name", "x.sam-backup"])

        self.assertEqual(args.command, "export")
        self.assertEqual(args.output, "/tmp/out")
        self.assertEqual(args.name, "x.sam-backup")
        self.assertIs(args.func, cli.cmd_export)

    def test_inspect_command(self) -> None:
        """Test inspect requires a file."""
        args = self.parser.parse_args(["inspect", "backup.sam-backup", "--json"])

        self.assertEqual(args.backup_file, "backup.sam-backup")
        self.assertTrue(args.json)
        self.assertIs(args.func, cli.cmd_inspect)

    def test_restore_command(self) -> None:
        """Test restore flags."""
        args = self.parser.parse_args(["restore", "b.sam-backup", "--no-backup", "--force"])

        self.assertEqual(args.backup_file, "b.sam-backup")
        self.assertTrue(args.no_backup)
        self.assertTrue(args.force)
        self.assertIs(args.func, cli.cmd_restore)

    def test_restore_requires_file(self) -> None:
        """Test restore without a file is a usage error."""
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                self.parser.parse_args(["restore"])


class TestOutputMode(unittest.TestCase):
    """Tests for quiet-mode output."""

    def tearDown(self) -> None:
        cli.set_output_mode(False)

    def test_quiet_hides_output(self) -> None:
        """Test quiet mode drops normal output but keeps forced output."""
        cli.set_output_mode(quiet=True)
        stdout = io.StringIO()
        with redirect_stdout(stdout):
            cli.output("hidden")
            cli.output("shown", force=True)

        self.assertEqual(stdout.getvalue(), "shown\n")

    def test_default_shows_output(self) -> None:
        """Test normal mode prints messages."""
        cli.set_output_mode()
        stdout = io.StringIO()
        with redirect_stdout(stdout):
            cli.output("visible")

        self.assertEqual(stdout.getvalue(), "visible\n")


class TestPromptPassword(unittest.TestCase):
    """Tests for interactive password entry."""

    def test_single_entry(self) -> None:
        """Test a password is returned as typed."""
        with patch("sambackup.cli.getpass.getpass", return_value="pw"):
            self.assertEqual(cli.prompt_password(), "pw")

    def test_confirm_match(self) -> None:
        """Test matching confirmation is accepted."""
        with patch("sambackup.cli.getpass.getpass", side_effect=["pw", "pw"]):
            self.assertEqual(cli.prompt_password(confirm=True), "pw")

    def test_confirm_mismatch(self) -> None:
        """Test mismatched confirmation is refused."""
        with patch("sambackup.cli.getpass.getpass", side_effect=["pw", "other"]):
            with redirect_stderr(io.StringIO()):
                self.assertIsNone(cli.prompt_password(confirm=True))

    def test_empty_password(self) -> None:
        """Test an empty password is refused."""
        with patch("sambackup.cli.getpass.getpass", return_value=""):
            with redirect_stderr(io.StringIO()):
                self.assertIsNone(cli.prompt_password())


class CliTestCase(unittest.TestCase):
    """Runs main() against a temporary config and database."""

    def setUp(self) -> None:
        self.temp_dir = Path(tempfile.mkdtemp())
        self.data_dir = self.temp_dir / "data"
        self.backup_dir = self.temp_dir / "backups"
        self.config_path = self.temp_dir / "config.yaml"
        self.config_path.write_text(
            f"sam_backup:\n  data_dir: {self.data_dir}\n"
            f"backup:\n  output_dir: {self.backup_dir}\n"
        )
        env = {k: v for k, v in os.environ.items() if not k.startswith("SAMBACKUP_")}
        self.env = patch.dict(os.environ, env, clear=True)
        self.env.start()

    def tearDown(self) -> None:
        self.env.stop()
        cli.set_output_mode(False)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def run_cli(self, *argv: str, passwords=(), answer: str = "y") -> tuple[int, str, str]:
        stdout, stderr = io.StringIO(), io.StringIO()
        with patch("sys.argv", ["sam-backup", "--config", str(self.config_path), *argv]), \
                patch("sambackup.cli.getpass.getpass", side_effect=list(passwords)), \
                patch("builtins.input", return_value=answer), \
                patch("sambackup.cli.setup_logging"), \
                redirect_stdout(stdout), redirect_stderr(stderr):
            with self.assertRaises(SystemExit) as ctx:
                main()
        return ctx.exception.code, stdout.getvalue(), stderr.getvalue()

    def populate(self) -> SQLiteStore:
        store = SQLiteStore(data_dir=self.data_dir)
        alice = Person.create("Alice")
        store.insert(alice)
        store.insert(EvidenceItem.create("Intro call", linked_people=[alice]))
        store.save()
        return store

    def export(self) -> Path:
        code, _, _ = self.run_cli("export", passwords=[PASSWORD, PASSWORD])
        self.assertEqual(code, 0)
        return next(self.backup_dir.glob("*.sam-backup"))


class TestMain(CliTestCase):
    """Tests for main() and its exit codes."""

    def test_no_command_prints_help(self) -> None:
        """Test running without a command shows help and exits 0."""
        code, out, _ = self.run_cli()

        self.assertEqual(code, 0)
        self.assertIn("usage:", out)

    def test_info(self) -> None:
        """Test info reports record counts."""
        self.populate()

        code, out, _ = self.run_cli("info")

        self.assertEqual(code, 0)
        self.assertIn("people: 1", out)
        self.assertIn("evidence: 1", out)

    def test_bad_config_exits_2(self) -> None:
        """Test a broken config file exits with status 2."""
        self.config_path.write_text("sam_backup:\n  log_level: NOISY\n")

        code, _, err = self.run_cli("info")

        self.assertEqual(code, 2)
        self.assertIn("Configuration error", err)


class TestExportCommand(CliTestCase):
    """Tests for the export command."""

    def test_export_writes_file(self) -> None:
        """Test export writes an encrypted backup to the configured directory."""
        self.populate()

        path = self.export()

        self.assertTrue(path.name.startswith("SAM Backup "))
        self.assertNotIn(b"Alice", path.read_bytes())

    def test_export_to_output_dir(self) -> None:
        """Test -o overrides the configured directory."""
        out_dir = self.temp_dir / "elsewhere"

        code, out, _ = self.run_cli("export", "-o", str(out_dir), passwords=[PASSWORD, PASSWORD])

        self.assertEqual(code, 0)
        self.assertEqual(len(list(out_dir.glob("*.sam-backup"))), 1)
        self.assertIn("exported successfully", out)

    def test_export_password_mismatch(self) -> None:
        """Test export stops when confirmation does not match."""
        code, _, err = self.run_cli("export", passwords=[PASSWORD, "different"])

        self.assertEqual(code, 1)
        self.assertIn("do not match", err)
        self.assertFalse(self.backup_dir.exists())


class TestInspectCommand(CliTestCase):
    """Tests for the inspect command."""

    def test_inspect(self) -> None:
        """Test inspect shows the counts of a backup."""
        self.populate()
        path = self.export()

        code, out, _ = self.run_cli("inspect", str(path), passwords=[PASSWORD])

        self.assertEqual(code, 0)
        self.assertIn("People: 1", out)
        self.assertIn("Format version: 1", out)

    def test_inspect_older_format_note(self) -> None:
        """Test an older format version is noted without promising a special read path."""
        bogus = self.temp_dir / "old.sam-backup"
        bogus.write_bytes(b"\0" * 64)
        info = SnapshotInfo(version=0, created_at="2024-01-01", counts={"people": 0})

        with patch("sambackup.cli.BackupService.preview_file", return_value=info):
            code, out, _ = self.run_cli("inspect", str(bogus), passwords=[PASSWORD])

        self.assertEqual(code, 0)
        self.assertIn("(written by an older format version)", out)
        self.assertNotIn("compatibility", out)

    def test_inspect_current_format_has_no_note(self) -> None:
        """Test a current backup prints no version note."""
        self.populate()
        path = self.export()

        code, out, _ = self.run_cli("inspect", str(path), passwords=[PASSWORD])

        self.assertEqual(code, 0)
        self.assertNotIn("older format version", out)

    def test_inspect_quiet(self) -> None:
        """Test -q suppresses the human-readable report."""
        self.populate()
        path = self.export()

        code, out, _ = self.run_cli("-q", "inspect", str(path), passwords=[PASSWORD])

        self.assertEqual(code, 0)
        self.assertEqual(out, "")

    def test_inspect_wrong_password(self) -> None:
        """Test a wrong password exits 1 with a readable message."""
        self.populate()
        path = self.export()

        code, _, err = self.run_cli("inspect", str(path), passwords=["wrong"])

        self.assertEqual(code, 1)
        self.assertIn("password is incorrect", err)

    def test_inspect_not_a_backup(self) -> None:
        """Test a short file is reported as invalid."""
        bogus = self.temp_dir / "bogus.sam-backup"
        bogus.write_bytes(b"too short")

        code, _, err = self.run_cli("inspect", str(bogus), passwords=[PASSWORD])

        self.assertEqual(code, 1)
        self.assertIn("not a valid SAM backup", err)


class TestRestoreCommand(CliTestCase):
    """Tests for the restore command."""

    def test_restore_replaces_data(self) -> None:
        """Test restore brings back the exported records."""
        original = self.populate()
        alice_id = original.fetch_all(Person)[0].id
        path = self.export()

        store = SQLiteStore(data_dir=self.data_dir)
        store.delete_all(EvidenceItem)
        store.delete_all(Person)
        store.insert(Person.create("Replacement"))
        store.save()

        code, out, _ = self.run_cli("restore", str(path), "--force", passwords=[PASSWORD])

        self.assertEqual(code, 0)
        self.assertIn("Restore completed successfully", out)
        people = SQLiteStore(data_dir=self.data_dir).fetch_all(Person)
        self.assertEqual([p.id for p in people], [alice_id])
        self.assertIn("Previous data backed up to", out)

    def test_restore_no_backup_flag(self) -> None:
        """Test --no-backup skips the safety backup."""
        self.populate()
        path = self.export()

        code, out, _ = self.run_cli(
            "restore", str(path), "--force", "--no-backup", passwords=[PASSWORD]
        )

        self.assertEqual(code, 0)
        self.assertNotIn("Previous data backed up to", out)
        self.assertEqual(len(list(self.backup_dir.glob("SAM Pre-Restore*"))), 0)

    def test_restore_cancelled(self) -> None:
        """Test declining the prompt changes nothing."""
        self.populate()
        path = self.export()

        code, out, _ = self.run_cli("restore", str(path), passwords=[PASSWORD], answer="n")

        self.assertEqual(code, 0)
        self.assertIn("Restore cancelled", out)
        self.assertEqual(len(list(self.backup_dir.glob("SAM Pre-Restore*"))), 0)

    def test_restore_missing_file(self) -> None:
        """Test a missing backup file exits 1."""
        code, _, err = self.run_cli("restore", str(self.temp_dir / "missing.sam-backup"))

        self.assertEqual(code, 1)
        self.assertIn("not found", err)

    def test_restore_wrong_password_keeps_data(self) -> None:
        """Test a wrong password leaves the database untouched."""
        self.populate()
        path = self.export()

        code, _, _ = self.run_cli("restore", str(path), "--force", passwords=["wrong"])

        self.assertEqual(code, 1)
        store = SQLiteStore(data_dir=self.data_dir)
        self.assertEqual(store.counts(), {"people": 1, "contexts": 0, "evidence": 1})


if __name__ == "__main__":
    unittest.main()
