import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock
import sys

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "callverify" / "src"
sys.path.insert(0, str(SRC))

from callverify.config import load_env_file, load_settings
from callverify.errors import InputError, format_error


class TestLoadSettings(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmpdir.name)

    def tearDown(self):
        self.tmpdir.cleanup()

    def write(self, text: str) -> str:
        path = self.dir / "callverify.yaml"
        path.write_text(text)
        return str(path)

    def test_yaml_overrides_defaults(self):
        path = self.write(
            "scraper:\n"
            "  requests_per_minute: 5\n"
            "  retry_delay: 1.5\n"
            "cross_reference:\n"
            "  require_date_match: true\n"
            "environment: production\n"
        )
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = load_settings(path)
        self.assertEqual(settings.scraper.requests_per_minute, 5)
        self.assertEqual(settings.scraper.retry_delay, 1.5)
        self.assertEqual(settings.scraper.max_retries, 3)
        self.assertTrue(settings.cross_reference.require_date_match)
        self.assertEqual(settings.environment, "production")
        self.assertEqual(settings.extraction.min_word_count, 1000)

    def test_missing_default_file_means_defaults(self):
        cwd = os.getcwd()
        os.chdir(self.dir)
        try:
            with mock.patch.dict(os.environ, {}, clear=True):
                settings = load_settings()
        finally:
            os.chdir(cwd)
        self.assertEqual(settings.scraper.requests_per_minute, 2)
        self.assertEqual(settings.audit.file_path, "./audit-logs")

    def test_missing_explicit_file(self):
        with self.assertRaises(InputError) as ctx:
            load_settings(str(self.dir / "nope.yaml"))
        self.assertIn("Config file not found", ctx.exception.message)

    def test_invalid_values(self):
        path = self.write("scraper:\n  requests_per_minute: 0\n")
        with self.assertRaises(InputError) as ctx:
            load_settings(path)
        self.assertEqual(ctx.exception.message, "Invalid configuration")
        self.assertTrue(ctx.exception.details["errors"][0].startswith("scraper.requests_per_minute"))

    def test_non_mapping(self):
        with self.assertRaises(InputError):
            load_settings(self.write("- just\n- a list\n"))

    def test_environment_overrides(self):
        path = self.write("store:\n  db_path: from-yaml.db\n")
        env = {"CALLVERIFY_DB_PATH": "from-env.db", "CALLVERIFY_AUDIT_DIR": "/tmp/audit", "CALLVERIFY_ENV": "ci"}
        with mock.patch.dict(os.environ, env, clear=True):
            settings = load_settings(path)
        self.assertEqual(settings.store.db_path, "from-env.db")
        self.assertEqual(settings.audit.file_path, "/tmp/audit")
        self.assertEqual(settings.environment, "ci")

    def test_empty_section_with_environment_override(self):
        path = self.write("scraper:\nstore:\n")
        with mock.patch.dict(os.environ, {"CALLVERIFY_DB_PATH": "from-env.db"}, clear=True):
            settings = load_settings(path)
        self.assertEqual(settings.store.db_path, "from-env.db")
        self.assertEqual(settings.scraper.requests_per_minute, 2)

    def test_scalar_section(self):
        path = self.write("store: callverify.db\n")
        with mock.patch.dict(os.environ, {"CALLVERIFY_DB_PATH": "from-env.db"}, clear=True):
            with self.assertRaises(InputError) as ctx:
                load_settings(path)
        self.assertIn("'store' must be a mapping", ctx.exception.message)

    def test_env_file_does_not_override(self):
        env_path = self.dir / ".env"
        env_path.write_text("# comment\nCALLVERIFY_ENV=staging\nCALLVERIFY_DB_PATH=dotenv.db\n")
        with mock.patch.dict(os.environ, {"CALLVERIFY_ENV": "already-set"}, clear=True):
            load_env_file(str(env_path))
            self.assertEqual(os.environ["CALLVERIFY_ENV"], "already-set")
            self.assertEqual(os.environ["CALLVERIFY_DB_PATH"], "dotenv.db")


class TestErrorEnvelope(unittest.TestCase):
    def test_known_error(self):
        text = format_error(InputError("bad flag", details={"flag": "--year"}))
        self.assertIn('"type": "InputError"', text)
        self.assertIn('"flag": "--year"', text)
        self.assertIn('"ok": false', text)

    def test_unknown_error(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError as e:
            text = format_error(e)
        self.assertIn('"type": "UnknownError"', text)
        self.assertIn('"message": "boom"', text)


if __name__ == "__main__":
    unittest.main()
