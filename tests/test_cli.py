"""
Tests for the CLI commands.

Uses Python's unittest module.
Tests argument parsing, command handlers and exit codes.
"""

from __future__ import annotations

import io
import json
import os
import shutil
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import MagicMock, patch

from cdnctl.api.client import SERVICE_ID_PATH, APIError
from cdnctl.cli import (
    create_parser,
    format_response,
    main,
    mask_secret,
    set_output_mode,
)
from cdnctl.config.profiles import ProfileStore


class TestArgumentParser(unittest.TestCase):
    """Tests for CLI argument parsing."""

    def setUp(self) -> None:
        """Set up parser for tests."""
        self.parser = create_parser()

    def test_version_argument(self) -> None:
        """Test --version argument."""
        with self.assertRaises(SystemExit) as cm, redirect_stdout(io.StringIO()):
            self.parser.parse_args(["--version"])

        self.assertEqual(cm.exception.code, 0)

    def test_no_command_defaults(self) -> None:
        """Test parsing with no command."""
        args = self.parser.parse_args([])

        self.assertIsNone(args.command)
        self.assertEqual(args.verbose, 0)
        self.assertFalse(args.quiet)

    def test_verbose_flag(self) -> None:
        """Test -v verbose flag."""
        self.assertEqual(self.parser.parse_args(["-vv"]).verbose, 2)

    def test_config_add_flags(self) -> None:
        args = self.parser.parse_args(
            ["config", "add", "--name", "prod", "--access-key", "AK1", "--secret", "SK1", "--default"]
        )

        self.assertEqual(args.name, "prod")
        self.assertEqual(args.access_key, "AK1")
        self.assertEqual(args.secret, "SK1")
        self.assertTrue(args.make_default)

    def test_config_add_default_unset(self) -> None:
        args = self.parser.parse_args(["config", "add"])
        self.assertIsNone(args.make_default)

    def test_config_add_no_default(self) -> None:
        args = self.parser.parse_args(["config", "add", "--no-default"])
        self.assertFalse(args.make_default)

    def test_config_add_default_flags_exclusive(self) -> None:
        with self.assertRaises(SystemExit), redirect_stderr(io.StringIO()):
            self.parser.parse_args(["config", "add", "--default", "--no-default"])

    def test_config_show_name_optional(self) -> None:
        self.assertEqual(self.parser.parse_args(["config", "show"]).name, "")
        self.assertEqual(self.parser.parse_args(["config", "show", "prod"]).name, "prod")

    def test_wsa_get(self) -> None:
        args = self.parser.parse_args(["wsa", "get", "example.com", "--profile", "prod"])

        self.assertEqual(args.domain, "example.com")
        self.assertEqual(args.profile, "prod")

    def test_wsa_get_requires_domain(self) -> None:
        with self.assertRaises(SystemExit), redirect_stderr(io.StringIO()):
            self.parser.parse_args(["wsa", "get"])

    def test_api_method_uppercased(self) -> None:
        args = self.parser.parse_args(["api", "post", "/v1.1/service_id"])

        self.assertEqual(args.method, "POST")
        self.assertEqual(args.endpoint, "cdn")

    def test_api_invalid_method(self) -> None:
        with self.assertRaises(SystemExit), redirect_stderr(io.StringIO()):
            self.parser.parse_args(["api", "TRACE", "/p"])


class TestHelpers(unittest.TestCase):
    """Tests for output helpers."""

    def test_mask_secret(self) -> None:
        self.assertEqual(mask_secret("abcdefgh"), "****efgh")
        self.assertEqual(mask_secret("abc"), "***")
        self.assertEqual(mask_secret(""), "")

    def test_format_response_json(self) -> None:
        self.assertEqual(format_response(b'{"id":"svc-1"}'), '{\n  "id": "svc-1"\n}')

    def test_format_response_text(self) -> None:
        self.assertEqual(format_response(b"not json"), "not json")


class CliTestCase(unittest.TestCase):
    """Runs main() against a temporary profiles file."""

    def setUp(self) -> None:
        self.temp_dir = tempfile.mkdtemp()
        self.profiles_file = Path(self.temp_dir) / "config.yaml"
        self.settings_file = Path(self.temp_dir) / "settings.yaml"
        self.env = patch.dict(os.environ, {}, clear=True)
        self.env.start()
        set_output_mode(False)

    def tearDown(self) -> None:
        self.env.stop()
        set_output_mode(False)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def run_cli(self, *argv: str) -> tuple[int, str, str]:
        stdout = io.StringIO()
        stderr = io.StringIO()
        full_argv = [
            "--settings", str(self.settings_file),
            "--profiles-file", str(self.profiles_file),
            *argv,
        ]
        with redirect_stdout(stdout), redirect_stderr(stderr):
            with self.assertRaises(SystemExit) as cm:
                main(full_argv)
        return cm.exception.code, stdout.getvalue(), stderr.getvalue()

    @property
    def store(self) -> ProfileStore:
        return ProfileStore(self.profiles_file)


class TestConfigCommands(CliTestCase):
    """Tests for the config command group."""

    def test_add_with_flags(self) -> None:
        code, out, _ = self.run_cli(
            "config", "add", "--name", "prod", "--access-key", "AK1", "--secret", "SK1", "--no-default"
        )

        self.assertEqual(code, 0)
        self.assertIn("Profile 'prod' added successfully.", out)
        # First profile is always made default
        self.assertIn("Set as default profile.", out)
        self.assertEqual(self.store.resolve("").access_key, "AK1")

    @patch("cdnctl.cli.getpass.getpass", return_value="SK1")
    @patch("builtins.input", side_effect=["prod", "AK1", "y"])
    def test_add_prompts_for_missing_values(self, mock_input: MagicMock, mock_getpass: MagicMock) -> None:
        code, _, _ = self.run_cli("config", "add")

        self.assertEqual(code, 0)
        self.assertEqual(mock_input.call_count, 3)
        mock_getpass.assert_called_once()
        profile = self.store.resolve("prod")
        self.assertEqual((profile.access_key, profile.access_key_secret), ("AK1", "SK1"))

    def test_add_duplicate_exits_with_profile_error(self) -> None:
        self.store.insert("prod", "AK1", "SK1")

        code, _, err = self.run_cli(
            "config", "add", "--name", "prod", "--access-key", "AK2", "--secret", "SK2", "--default"
        )

        self.assertEqual(code, 2)
        self.assertIn("already exists", err)

    def test_remove_default_reports_new_default(self) -> None:
        self.store.insert("prod", "AK1", "SK1")
        self.store.insert("staging", "AK2", "SK2")

        code, out, _ = self.run_cli("config", "remove", "prod")

        self.assertEqual(code, 0)
        self.assertIn("Profile 'prod' removed successfully.", out)
        self.assertIn("Default profile changed to 'staging'.", out)

    def test_remove_unknown(self) -> None:
        code, _, err = self.run_cli("config", "remove", "ghost")

        self.assertEqual(code, 2)
        self.assertIn("not found", err)

    def test_show_masks_secrets(self) -> None:
        self.store.insert("prod", "AK1", "SECRET-VALUE")

        code, out, _ = self.run_cli("config", "show")

        self.assertEqual(code, 0)
        self.assertIn("Name: prod (default)", out)
        self.assertNotIn("SECRET-VALUE", out)
        self.assertIn("ALUE", out)

    def test_show_json_with_secrets(self) -> None:
        self.store.insert("prod", "AK1", "SK1")
        self.store.insert("staging", "AK2", "SK2")

        code, out, _ = self.run_cli("config", "show", "staging", "--format", "json", "--show-secrets")

        self.assertEqual(code, 0)
        self.assertEqual(
            json.loads(out),
            {
                "default_profile": "prod",
                "profiles": [{"name": "staging", "accessKey": "AK2", "accessKeySecret": "SK2"}],
            },
        )

    def test_show_empty(self) -> None:
        code, out, _ = self.run_cli("config", "show")

        self.assertEqual(code, 0)
        self.assertIn("No profiles found", out)

    def test_use_sets_default(self) -> None:
        self.store.insert("prod", "AK1", "SK1")
        self.store.insert("staging", "AK2", "SK2")

        code, _, _ = self.run_cli("config", "use", "staging")

        self.assertEqual(code, 0)
        self.assertEqual(self.store.resolve("").name, "staging")

    def test_undecodable_profiles_file_exits_with_profile_error(self) -> None:
        self.profiles_file.write_bytes(b"default_profile: \xff\xfe\nprofiles: []\n")

        code, _, err = self.run_cli("config", "show")

        self.assertEqual(code, 2)
        self.assertIn("not valid UTF-8", err)

    def test_invalid_settings_exit_code(self) -> None:
        self.settings_file.write_text("cdnctl:\n  log_level: LOUD\n")

        code, _, err = self.run_cli("config", "show")

        self.assertEqual(code, 2)
        self.assertIn("Configuration error", err)


class TestApiCommands(CliTestCase):
    """Tests for the wsa and api commands with a mocked client."""

    def setUp(self) -> None:
        super().setUp()
        self.store.insert("prod", "AK1", "SK1")
        patcher = patch("cdnctl.cli.ApiClient")
        self.client_class = patcher.start()
        self.addCleanup(patcher.stop)
        self.client = self.client_class.return_value

    def test_wsa_get_posts_domain(self) -> None:
        self.client.call.return_value = b'{"id":"svc-1"}'

        code, out, _ = self.run_cli("wsa", "get", "example.com")

        self.assertEqual(code, 0)
        self.client.call.assert_called_once_with(
            "POST",
            "https://cdn-api.swiftfederation.com",
            SERVICE_ID_PATH,
            {"domain": "example.com"},
            "",
        )
        self.assertIn('"id": "svc-1"', out)

    def test_wsa_get_api_error(self) -> None:
        self.client.call.side_effect = APIError(404, "Not Found", b'{"error":"x"}')

        code, _, err = self.run_cli("wsa", "get", "example.com")

        self.assertEqual(code, 1)
        self.assertIn("404", err)

    def test_api_with_data_and_base_endpoint(self) -> None:
        self.client.call.return_value = b"[]"

        code, _, _ = self.run_cli(
            "api", "put", "/v1.1/thing", "--data", '{"a": 1}', "--endpoint", "base", "--profile", "prod"
        )

        self.assertEqual(code, 0)
        self.client.call.assert_called_once_with(
            "PUT",
            "https://base-api.swiftfederation.com",
            "/v1.1/thing",
            {"a": 1},
            "prod",
        )

    def test_api_base_url_override(self) -> None:
        self.client.call.return_value = b"{}"

        self.run_cli("api", "GET", "/p", "--base-url", "http://localhost:9000")

        self.assertEqual(self.client.call.call_args.args[1], "http://localhost:9000")

    def test_api_invalid_json(self) -> None:
        code, _, err = self.run_cli("api", "POST", "/p", "--data", "{oops")

        self.assertEqual(code, 1)
        self.assertIn("not valid JSON", err)
        self.client.call.assert_not_called()

    def test_client_uses_configured_timeout(self) -> None:
        self.settings_file.write_text("cdnctl:\n  timeout_seconds: 3\n")
        self.client.call.return_value = b"{}"

        self.run_cli("api", "GET", "/p")

        self.assertEqual(self.client_class.call_args.kwargs["timeout"], 3.0)


if __name__ == "__main__":
    unittest.main()
