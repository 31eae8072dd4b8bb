import os
from pathlib import Path
import subprocess
import sys
import tempfile
import unittest
from unittest import mock

import requests

sys.path.insert(0, os.fspath(Path(__file__).parent.parent))
from rocm_ai_setup.constants import Constants
from rocm_ai_setup.exceptions import AnsibleError, CommandError, PrerequisiteError, RepositoryError
from rocm_ai_setup.provision import (
    AnsibleRunner, AptPackageManager, Repository, detect_real_user, prerequisites, user_home,
)
from rocm_ai_setup.provision.repository import confirm, setup_github_auth
from rocm_ai_setup.system import PlatformInfo


def completed(stdout="", returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout)


class PrerequisitesTest(unittest.TestCase):
    def test_ubuntu_release(self):
        jammy = PlatformInfo(os_id="ubuntu", os_name="Ubuntu", os_version="22.04")
        self.assertIs(prerequisites.check_ubuntu_release("22.04", jammy), jammy)
        with self.assertRaises(PrerequisiteError) as ctx:
            prerequisites.check_ubuntu_release("24.04", jammy)
        self.assertIn("Suggested solutions", str(ctx.exception))

    @mock.patch("rocm_ai_setup.provision.prerequisites.requests.get")
    def test_internet(self, mock_get):
        prerequisites.check_internet("https://google.com", 5)
        mock_get.assert_called_once_with("https://google.com", timeout=5)

        mock_get.side_effect = requests.ConnectionError("no route")
        with self.assertRaises(PrerequisiteError):
            prerequisites.check_internet()

    @mock.patch("rocm_ai_setup.provision.prerequisites.run_command")
    def test_sudo(self, mock_run):
        prerequisites.check_sudo()
        mock_run.side_effect = CommandError(["sudo", "true"], 1)
        with self.assertRaises(PrerequisiteError):
            prerequisites.check_sudo()

    @mock.patch("rocm_ai_setup.provision.prerequisites.run_command")
    def test_has_passwordless_sudo(self, mock_run):
        mock_run.return_value = completed("", 1)
        self.assertFalse(prerequisites.has_passwordless_sudo())
        mock_run.return_value = completed("", 0)
        self.assertTrue(prerequisites.has_passwordless_sudo())

    @mock.patch("rocm_ai_setup.provision.prerequisites.command_exists", return_value=False)
    def test_ensure_command_installs(self, _exists):
        apt = mock.Mock(spec=AptPackageManager)
        self.assertTrue(prerequisites.ensure_command("gh", apt=apt))
        apt.install.assert_called_once_with(["gh"])


class AptPackageManagerTest(unittest.TestCase):
    @mock.patch("rocm_ai_setup.provision.apt.run_command")
    def test_install_only_missing(self, mock_run):
        dpkg = {
            "git": "ii  git            1:2.34.1-1ubuntu1  amd64  fast, scalable\n",
            "ansible": "un  ansible        <none>             <none>\n",
        }

        def run(cmd, **kwargs):
            if cmd[0] == "dpkg":
                return completed(dpkg[cmd[2]])
            return completed()
        mock_run.side_effect = run

        apt = AptPackageManager()
        self.assertEqual(apt.install(["git", "ansible"]), ["ansible"])
        commands = [c.args[0] for c in mock_run.call_args_list]
        self.assertIn(["sudo", "apt-get", "update"], commands)
        self.assertIn(["sudo", "apt-get", "install", "-y", "ansible"], commands)


class RepositoryTest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.target = Path(self.tmp.name) / "ai-setup-scripts"
        self.repo = Repository(Constants.DEFAULT_REPO_URL, str(self.target))

    @mock.patch("rocm_ai_setup.provision.repository.run_command")
    def test_clone_when_missing(self, mock_run):
        self.assertEqual(self.repo.clone_or_update(), self.target)
        mock_run.assert_called_once_with(["git", "clone", Constants.DEFAULT_REPO_URL, str(self.target)])

    @mock.patch("rocm_ai_setup.provision.repository.run_command")
    def test_existing_declined_pulls(self, mock_run):
        self.target.mkdir()
        self.repo.clone_or_update(prompt=lambda question: "n")
        mock_run.assert_called_once_with(["git", "pull"], cwd=str(self.target))
        self.assertTrue(self.target.exists())

    @mock.patch("rocm_ai_setup.provision.repository.run_command")
    def test_existing_reclone(self, mock_run):
        self.target.mkdir()
        (self.target / "stale").write_text("x")
        self.repo.clone_or_update(prompt=lambda question: "y")
        self.assertFalse((self.target / "stale").exists())
        self.assertEqual(mock_run.call_args.args[0][:2], ["git", "clone"])

    @mock.patch("rocm_ai_setup.provision.repository.run_command")
    def test_clone_failure(self, mock_run):
        mock_run.side_effect = CommandError(["git", "clone"], 128, "Authentication failed")
        with self.assertRaises(RepositoryError):
            self.repo.clone()

    def test_confirm_defaults_to_no(self):
        self.assertFalse(confirm("Remove?", lambda q: ""))
        self.assertTrue(confirm("Remove?", lambda q: "Y"))

        def eof(question):
            raise EOFError
        self.assertFalse(confirm("Remove?", eof))

    def test_confirm_reads_input_at_call_time(self):
        with mock.patch("builtins.input", return_value="yes") as mock_input:
            self.assertTrue(confirm("Remove and re-clone?"))
        mock_input.assert_called_once_with("Remove and re-clone? (y/N): ")

    @mock.patch("rocm_ai_setup.provision.repository.run_command")
    def test_existing_prompt_defaults_to_input(self, mock_run):
        self.target.mkdir()
        with mock.patch("builtins.input", return_value=""):
            self.repo.clone_or_update()
        mock_run.assert_called_once_with(["git", "pull"], cwd=str(self.target))

    @mock.patch("rocm_ai_setup.provision.repository.run_command")
    @mock.patch("rocm_ai_setup.provision.repository.command_exists", return_value=False)
    def test_gh_auth_installs_cli(self, _exists, mock_run):
        apt = mock.Mock(spec=AptPackageManager)
        self.assertEqual(setup_github_auth("3", apt=apt), "gh")
        apt.install.assert_called_once_with(["gh"])
        mock_run.assert_called_once_with(["gh", "auth", "login"], capture=False)

    def test_invalid_auth_choice(self):
        self.assertIsNone(setup_github_auth("9"))


class AnsibleRunnerTest(unittest.TestCase):
    def test_detect_real_user(self):
        self.assertEqual(detect_real_user({"SUDO_USER": "alice", "USER": "root"}), "alice")
        self.assertEqual(detect_real_user({"USER": "bob"}), "bob")
        with tempfile.TemporaryDirectory() as home_root:
            os.mkdir(os.path.join(home_root, "zoe"))
            os.mkdir(os.path.join(home_root, "carol"))
            self.assertEqual(detect_real_user({"USER": "root"}, home_root), "carol")
            self.assertEqual(detect_real_user({}, os.path.join(home_root, "missing")), "root")

    def test_missing_playbook(self):
        with tempfile.TemporaryDirectory() as tmp:
            runner = AnsibleRunner(tmp, apt=mock.Mock())
            with self.assertRaises(AnsibleError):
                runner.playbook_path(Constants.SETUP_PLAYBOOK)
        with self.assertRaises(AnsibleError):
            AnsibleRunner("/nonexistent/playbooks", apt=mock.Mock()).playbook_path(Constants.SETUP_PLAYBOOK)

    def test_bundled_playbooks_exist(self):
        runner = AnsibleRunner(apt=mock.Mock())
        self.assertTrue(runner.playbook_path(Constants.SETUP_PLAYBOOK).is_file())
        self.assertTrue(runner.playbook_path(Constants.VERIFY_PLAYBOOK).is_file())

    @mock.patch("rocm_ai_setup.provision.ansible_runner.has_passwordless_sudo", return_value=False)
    @mock.patch("rocm_ai_setup.provision.ansible_runner.run_command", return_value=completed())
    def test_run_setup_command(self, mock_run, _sudo):
        runner = AnsibleRunner(apt=mock.Mock())
        runner.run_setup("alice", {"rocm_version": "6.4.4"})

        cmd = mock_run.call_args.args[0]
        self.assertEqual(cmd[0], "ansible-playbook")
        self.assertTrue(cmd[1].endswith(Constants.SETUP_PLAYBOOK))
        self.assertIn("-v", cmd)
        self.assertIn("--ask-become-pass", cmd)
        self.assertIn("target_user=alice", cmd)
        self.assertIn('{"rocm_version": "6.4.4"}', cmd)

    @mock.patch("rocm_ai_setup.provision.ansible_runner.has_passwordless_sudo", return_value=True)
    @mock.patch("rocm_ai_setup.provision.ansible_runner.run_command", side_effect=CommandError(["ansible-playbook"], 2))
    def test_run_setup_failure(self, mock_run, _sudo):
        with self.assertRaises(AnsibleError):
            AnsibleRunner(apt=mock.Mock()).run_setup("alice")

    @mock.patch("rocm_ai_setup.provision.prerequisites.run_command", return_value=completed())
    @mock.patch("rocm_ai_setup.provision.ansible_runner.run_command", return_value=completed())
    def test_run_setup_passwordless_sudo(self, mock_run, mock_sudo_run):
        AnsibleRunner(apt=mock.Mock()).run_setup("alice")
        mock_sudo_run.assert_called_once_with(["sudo", "-n", "true"], check=False)
        self.assertNotIn("--ask-become-pass", mock_run.call_args.args[0])

    @mock.patch("rocm_ai_setup.provision.ansible_runner.pwd.getpwnam")
    def test_user_home(self, mock_getpwnam):
        mock_getpwnam.return_value = mock.Mock(pw_dir="/srv/home/alice")
        self.assertEqual(user_home("alice"), "/srv/home/alice")
        mock_getpwnam.side_effect = KeyError("alice")
        self.assertEqual(user_home("alice"), "/home/alice")

    @mock.patch("rocm_ai_setup.provision.ansible_runner.run_command", return_value=completed("", 0))
    def test_run_verify_command(self, mock_run):
        self.assertEqual(AnsibleRunner(apt=mock.Mock()).run_verify("alice", "/home/alice"), 0)
        cmd = mock_run.call_args.args[0]
        self.assertIn("--connection=local", cmd)
        self.assertIn("--inventory=localhost,", cmd)
        self.assertIn("ansible_user=alice", cmd)
        self.assertIn("ansible_user_dir=/home/alice", cmd)

    @mock.patch("rocm_ai_setup.provision.ansible_runner.run_command")
    @mock.patch("rocm_ai_setup.provision.ansible_runner.command_exists", return_value=False)
    def test_ensure_installed(self, _exists, mock_run):
        mock_run.return_value = completed("ansible [core 2.12.0]\n  config file = None\n")
        apt = mock.Mock(spec=AptPackageManager)
        self.assertEqual(AnsibleRunner(apt=apt).ensure_installed(), "ansible [core 2.12.0]")
        apt.install.assert_called_once_with(["ansible"])


if __name__ == "__main__":
    unittest.main()
