import unittest

from demigod.settings import env_flag, env_int, env_value, load_settings

from _fakes import temp_environ


class TestSettings(unittest.TestCase):
    def test_legacy_log_level_still_works(self) -> None:
        with temp_environ({"DEMIGOD_LOG_LEVEL": None, "LOG_LEVEL": "debug"}):
            s = load_settings()
            self.assertEqual(s.log_level, "DEBUG")

    def test_empty_values_count_as_unset(self) -> None:
        with temp_environ({"DEMIGOD_LOG_LEVEL": "  ", "LOG_LEVEL": None, "DEMIGOD_LOG_PATH": ""}):
            s = load_settings()
            self.assertEqual(s.log_level, "INFO")
            self.assertIsNone(s.log_path)

    def test_non_positive_rotation_falls_back(self) -> None:
        with temp_environ({"DEMIGOD_LOG_ROTATION_MB": "0", "DEMIGOD_LOG_RETENTION_DAYS": "abc"}):
            s = load_settings()
            self.assertEqual(s.log_rotation_mb, 10)
            self.assertEqual(s.log_retention_days, 14)

    def test_log_json_flag(self) -> None:
        with temp_environ({"DEMIGOD_LOG_JSON": "yes"}):
            self.assertTrue(load_settings().log_json)

    def test_explicit_environ_mapping(self) -> None:
        s = load_settings({"DEMIGOD_LOG_LEVEL": " warning ", "DEMIGOD_LOG_ROTATION_MB": "-3", "DEMIGOD_LOG_JSON": "off"})
        self.assertEqual(s.log_level, "WARNING")
        self.assertEqual(s.log_rotation_mb, 10)
        self.assertFalse(s.log_json)


class TestEnvHelpers(unittest.TestCase):
    def test_blank_value_falls_through_to_legacy_name(self) -> None:
        self.assertEqual(env_value("NEW", "OLD", environ={"NEW": " ", "OLD": "x"}), "x")
        self.assertIsNone(env_value("NEW", environ={}))

    def test_flag_keeps_default_for_unknown_tokens(self) -> None:
        self.assertTrue(env_flag("F", True, environ={"F": "maybe"}))
        self.assertFalse(env_flag("F", True, environ={"F": "No"}))

    def test_int_minimum(self) -> None:
        self.assertEqual(env_int("N", 5, environ={"N": "0"}), 5)
        self.assertEqual(env_int("N", 5, minimum=0, environ={"N": "0"}), 0)
        self.assertEqual(env_int("N", 5, environ={"N": "12"}), 12)
