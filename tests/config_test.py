import os
from pathlib import Path
import sys
import tempfile
import textwrap
import unittest
from unittest import mock

sys.path.insert(0, os.fspath(Path(__file__).parent.parent))
from rocm_ai_setup.config import ConfigHelper, ConfigParser, ConfigValidator
from rocm_ai_setup.constants import Constants
from rocm_ai_setup.exceptions import ConfigurationError


MINIMAL_CONFIG = """\
Config:
  Core:
    LogLevel: INFO
  Results:
    OutputDirectory: ./results
"""


class ConfigParserTest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def write(self, content: str, name: str = "config.yml") -> str:
        path = Path(self.tmp.name) / name
        path.write_text(textwrap.dedent(content))
        return str(path)

    def test_bundled_default_config_is_valid(self):
        config = ConfigParser(str(Constants.DEFAULT_CONFIG_FILE))
        self.assertEqual(config.get("Config.Setup.UbuntuRelease"), "22.04")
        self.assertEqual(config.get("Config.Docker.Framework"), "pytorch")

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            ConfigParser(os.path.join(self.tmp.name, "nope.yml"))

    def test_empty_file(self):
        with self.assertRaises(ConfigurationError):
            ConfigParser(self.write(""))

    def test_invalid_yaml(self):
        with self.assertRaises(ConfigurationError):
            ConfigParser(self.write("Config: [unclosed\n"))

    def test_env_var_default_and_override(self):
        path = self.write(MINIMAL_CONFIG + "  Setup:\n    TargetUser: ${ROCM_TEST_USER:-alice}\n")
        with mock.patch.dict(os.environ, {}, clear=False):
            os.environ.pop("ROCM_TEST_USER", None)
            self.assertEqual(ConfigParser(path).get("Config.Setup.TargetUser"), "alice")
        with mock.patch.dict(os.environ, {"ROCM_TEST_USER": "bob"}):
            self.assertEqual(ConfigParser(path).get("Config.Setup.TargetUser"), "bob")

    def test_required_env_var_missing(self):
        path = self.write(MINIMAL_CONFIG + "  Setup:\n    TargetUser: ${ROCM_TEST_REQUIRED}\n")
        with mock.patch.dict(os.environ, {}, clear=False):
            os.environ.pop("ROCM_TEST_REQUIRED", None)
            with self.assertRaises(ConfigurationError):
                ConfigParser(path)

    def test_schema_rejects_bad_values(self):
        path = self.write(MINIMAL_CONFIG + "  Docker:\n    Framework: jax\n")
        with self.assertRaises(ConfigurationError):
            ConfigParser(path)
        path = self.write(MINIMAL_CONFIG + "  Setup:\n    UbuntuRelease: jammy\n", "second.yml")
        with self.assertRaises(ConfigurationError):
            ConfigParser(path)

    def test_get_section_and_default(self):
        config = ConfigParser(self.write(MINIMAL_CONFIG))
        self.assertEqual(config.get_section("Core"), {"LogLevel": "INFO"})
        self.assertEqual(config.get_section("Docker"), {})
        self.assertEqual(config.get("Config.Core.Missing", 5), 5)


class ConfigValidatorTest(unittest.TestCase):
    def test_validate_and_report_lists_errors(self):
        data = {"Config": {"Core": {"LogLevel": "LOUD"}}}
        valid, messages = ConfigValidator.validate_and_report(data)
        self.assertFalse(valid)
        self.assertTrue(messages)

    def test_valid_minimal(self):
        data = {"Config": {"Core": {"LogLevel": "DEBUG"}, "Results": {"OutputDirectory": "out"}}}
        valid, messages = ConfigValidator.validate_and_report(data)
        self.assertTrue(valid, messages)


class ConfigHelperTest(unittest.TestCase):
    def test_find_config_prefers_explicit_then_env(self):
        self.assertEqual(ConfigHelper.find_config_file("/tmp/explicit.yml"), "/tmp/explicit.yml")
        with mock.patch.dict(os.environ, {Constants.CONFIG_ENV_VAR: "/tmp/env.yml"}):
            self.assertEqual(ConfigHelper.find_config_file(), "/tmp/env.yml")

    def test_find_config_falls_back_to_bundled(self):
        with tempfile.TemporaryDirectory() as tmp, \
                mock.patch.dict(os.environ, {"HOME": tmp}), \
                mock.patch("pathlib.Path.cwd", return_value=Path(tmp)):
            os.environ.pop(Constants.CONFIG_ENV_VAR, None)
            self.assertEqual(ConfigHelper.find_config_file(), str(Constants.DEFAULT_CONFIG_FILE))

    def test_load_config_not_required(self):
        self.assertIsNone(ConfigHelper.load_config("/nonexistent/config.yml"))
        with self.assertRaises(FileNotFoundError):
            ConfigHelper.load_config("/nonexistent/config.yml", required=True)

    def test_section_defaults_without_config(self):
        setup = ConfigHelper.get_setup_config(None)
        self.assertEqual(setup["ubuntu_release"], "22.04")
        self.assertEqual(setup["connectivity_url"], "https://google.com")
        self.assertEqual(setup["playbook_dir"], str(Constants.PLAYBOOK_DIR))

        layout = ConfigHelper.get_layout_config(None)
        self.assertEqual(layout["projects_dir"], "~/Projects")
        self.assertIn("cache/huggingface", layout["subdirectories"])

        docker = ConfigHelper.get_docker_config(None)
        self.assertEqual(docker["framework"], "pytorch")
        self.assertIsNone(docker["stability"])

    def test_docker_environment_values_are_strings(self):
        config = mock.Mock()
        config.get_section.return_value = {"Environment": {"HIP_VISIBLE_DEVICES": 0}}
        docker = ConfigHelper.get_docker_config(config)
        self.assertEqual(docker["environment"], {"HIP_VISIBLE_DEVICES": "0"})


if __name__ == "__main__":
    unittest.main()
