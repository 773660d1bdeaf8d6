import json
import tempfile
import threading
import unittest
from pathlib import Path

from edportal.academics.enrollment import FallbackPolicy
from edportal.core.audit import AccessLogger
from edportal.core.config import (
    PortalConfig,
    apply_env_overrides,
    config_from_env,
    load_portal_config,
)
from edportal.core.errors import AuthorizationDenied, ConfigError, PortalError


class ConfigParsingTests(unittest.TestCase):
    def _write_yaml(self, data: str) -> Path:
        tmp = tempfile.NamedTemporaryFile("w", delete=False, suffix=".yaml")
        tmp.write(data)
        tmp.flush()
        tmp.close()
        self.addCleanup(lambda: Path(tmp.name).unlink(missing_ok=True))
        return Path(tmp.name)

    def test_load_portal_config(self) -> None:
        path = self._write_yaml(
            """
            data:
              snapshot_path: snapshot.yaml
            policy:
              fallback: Show-Nothing
            server:
              cors_origins: "http://a.test, http://b.test"
            logging:
              level: debug
              audit_log: logs/access.jsonl
            """
        )
        config = load_portal_config(path)
        self.assertIsInstance(config, PortalConfig)
        self.assertEqual(config.data.snapshot_path, (path.parent / "snapshot.yaml").resolve())
        self.assertEqual(config.policy.fallback, FallbackPolicy.SHOW_NOTHING)
        self.assertEqual(config.server.cors_origins, ["http://a.test", "http://b.test"])
        self.assertEqual(config.logging.level, "DEBUG")
        self.assertEqual(config.logging.audit_log, (path.parent / "logs" / "access.jsonl").resolve())

    def test_load_portal_config_accepts_flat_format(self) -> None:
        path = self._write_yaml(
            """
            snapshot_path: export.json
            fallback: show_all
            """
        )
        config = load_portal_config(path)
        self.assertEqual(config.data.snapshot_path.name, "export.json")
        self.assertTrue(config.data.snapshot_path.is_absolute())
        self.assertEqual(config.policy.fallback, FallbackPolicy.SHOW_ALL)
        self.assertEqual(config.server.cors_origins, ["*"])
        self.assertIsNone(config.logging.audit_log)

    def test_missing_data_section_is_config_error(self) -> None:
        path = self._write_yaml("policy:\n  fallback: show_all\n")
        with self.assertRaises(ConfigError) as ctx:
            load_portal_config(path)
        self.assertIsInstance(ctx.exception, ValueError)

    def test_unknown_fallback_is_config_error(self) -> None:
        path = self._write_yaml("data:\n  snapshot_path: s.yaml\npolicy:\n  fallback: maybe\n")
        with self.assertRaises(ConfigError):
            load_portal_config(path)

    def test_non_mapping_root_is_config_error(self) -> None:
        path = self._write_yaml("- one\n- two\n")
        with self.assertRaises(ConfigError):
            load_portal_config(path)

    def test_env_overrides(self) -> None:
        path = self._write_yaml("data:\n  snapshot_path: s.yaml\n")
        config = apply_env_overrides(
            load_portal_config(path),
            {"PORTAL_SNAPSHOT": "/tmp/other.yaml", "PORTAL_FALLBACK": "show_nothing"},
        )
        self.assertEqual(config.data.snapshot_path, Path("/tmp/other.yaml").resolve())
        self.assertEqual(config.policy.fallback, FallbackPolicy.SHOW_NOTHING)

    def test_config_from_env(self) -> None:
        path = self._write_yaml("data:\n  snapshot_path: s.yaml\n")
        from_file = config_from_env({"PORTAL_CONFIG": str(path)})
        self.assertEqual(from_file.data.snapshot_path, (path.parent / "s.yaml").resolve())

        from_snapshot = config_from_env({"PORTAL_SNAPSHOT": "/tmp/only.yaml"})
        self.assertEqual(from_snapshot.data.snapshot_path, Path("/tmp/only.yaml").resolve())

        with self.assertRaises(ConfigError):
            config_from_env({})


class AccessLoggerTests(unittest.TestCase):
    def test_record_writes_event(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = AccessLogger(Path(tmpdir) / "audit" / "access.jsonl")
            with self.assertLogs("edportal.audit", level="WARNING") as captured:
                event = logger.record("programs", "denied", user_id="stu-fall", role="student")
            self.assertEqual(event.view, "programs")
            self.assertEqual(event.details, {})
            self.assertIn("denied: programs for stu-fall", captured.output[0])
            contents = (Path(tmpdir) / "audit" / "access.jsonl").read_text().strip()
            data = json.loads(contents)
            self.assertEqual(data["decision"], "denied")
            self.assertEqual(data["user_id"], "stu-fall")

    def test_concurrent_records_stay_one_per_line(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "access.jsonl"
            logger = AccessLogger(path)

            def grant(index: int) -> None:
                logger.record("grades", "granted", user_id=f"s{index}", role="student", course_id="db101")

            threads = [threading.Thread(target=grant, args=(index,)) for index in range(20)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()
            events = [json.loads(line) for line in path.read_text().splitlines()]
            self.assertEqual(len(events), 20)
            self.assertEqual({event["user_id"] for event in events}, {f"s{index}" for index in range(20)})


class ErrorTests(unittest.TestCase):
    def test_portal_error_carries_code_and_details(self) -> None:
        error = AuthorizationDenied("nope", error_code="forbidden", details={"capability": "view_programs"})
        self.assertIsInstance(error, PortalError)
        self.assertEqual(str(error), "nope")
        self.assertEqual(error.error_code, "forbidden")
        self.assertEqual(error.details["capability"], "view_programs")
        self.assertEqual(PortalError("plain").details, {})


if __name__ == "__main__":
    unittest.main()
