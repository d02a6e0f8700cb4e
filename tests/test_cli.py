import io
import json
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest import mock

from fastapi.testclient import TestClient

import cp_auth
from cpauth.client import HttpTransport
from cpauth.config import Settings
from cpauth.constants import DEFAULT_PORT
from cpauth.engine import ProtocolEngine
from cpauth.group import get_group
from cpauth.server import create_app
from cpauth.store import MemoryDirectory


class TestSettings(unittest.TestCase):
    def test_defaults(self) -> None:
        settings = Settings.from_env({})
        self.assertEqual(settings.port, DEFAULT_PORT)
        self.assertEqual(settings.group, "modp-2048")
        self.assertEqual(settings.log_level, "INFO")

    def test_environment_overrides(self) -> None:
        settings = Settings.from_env(
            {"CPAUTH_PORT": "8080", "CPAUTH_STORE": "sqlite:auth.db", "CPAUTH_LOG_LEVEL": "debug"}
        )
        self.assertEqual(settings.port, 8080)
        self.assertEqual(settings.store, "sqlite:auth.db")
        self.assertEqual(settings.log_level, "DEBUG")

    def test_invalid_port(self) -> None:
        with self.assertRaises(ValueError):
            Settings.from_env({"CPAUTH_PORT": "http"})


class TestCommandLine(unittest.TestCase):
    def setUp(self) -> None:
        patcher = mock.patch.dict("os.environ", {"CPAUTH_GROUP": "modp-1024"})
        patcher.start()
        self.addCleanup(patcher.stop)
        self.app = create_app(ProtocolEngine(MemoryDirectory(), get_group("modp-1024")))
        connect = mock.patch.object(
            HttpTransport,
            "connect",
            side_effect=lambda url: HttpTransport(TestClient(self.app)),
        )
        connect.start()
        self.addCleanup(connect.stop)

    def run_main(self, argv, passphrase="open sesame"):
        stdout, stderr = io.StringIO(), io.StringIO()
        with mock.patch("getpass.getpass", return_value=passphrase), redirect_stdout(stdout), redirect_stderr(stderr):
            code = cp_auth.main(argv)
        return code, stdout.getvalue(), stderr.getvalue()

    def test_parameters(self) -> None:
        code, out, _ = self.run_main(["parameters"])
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out), get_group("modp-1024").to_dict())

    def test_register_then_login(self) -> None:
        code, out, _ = self.run_main(["register", "--user", "alice"])
        self.assertEqual(code, 0)
        self.assertTrue(json.loads(out)["registered"])

        code, out, _ = self.run_main(["login", "--user", "alice"])
        self.assertEqual(code, 0)
        payload = json.loads(out)
        self.assertTrue(payload["success"])
        self.assertTrue(payload["session_id"])

        code, out, _ = self.run_main(["login", "--user", "alice"], passphrase="open barley")
        self.assertEqual(code, 1)
        self.assertFalse(json.loads(out)["success"])

    def test_login_unregistered(self) -> None:
        code, _, err = self.run_main(["login", "--user", "mallory"])
        self.assertEqual(code, 1)
        self.assertIn("not registered", err)

    def test_group_mismatch_reported(self) -> None:
        code, _, err = self.run_main(["--group", "modp-2048", "login", "--user", "alice"])
        self.assertEqual(code, 1)
        self.assertIn("Verifier error", err)

    def test_empty_passphrase_reported(self) -> None:
        code, _, err = self.run_main(["register", "--user", "alice"], passphrase="")
        self.assertEqual(code, 1)
        self.assertIn("Invalid credentials", err)

    def test_invalid_port_in_environment_reported(self) -> None:
        with mock.patch.dict("os.environ", {"CPAUTH_PORT": "http"}):
            code, _, err = self.run_main(["parameters"])
        self.assertEqual(code, 1)
        self.assertIn("Invalid configuration", err)

    def test_invalid_log_level_reported(self) -> None:
        code, out, err = self.run_main(["--log-level", "chatty", "parameters"])
        self.assertEqual(code, 1)
        self.assertEqual(out, "")
        self.assertIn("Invalid log level: chatty", err)

        with mock.patch.dict("os.environ", {"CPAUTH_LOG_LEVEL": "loud"}):
            code, _, err = self.run_main(["parameters"])
        self.assertEqual(code, 1)
        self.assertIn("Invalid log level", err)


if __name__ == "__main__":
    unittest.main()
