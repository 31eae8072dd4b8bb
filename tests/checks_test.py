import json
import os
from pathlib import Path
import sys
import tempfile
import unittest
from unittest import mock

sys.path.insert(0, os.fspath(Path(__file__).parent.parent))
from rocm_ai_setup.checks import CheckResult, IntegrationSuite, Report, default_checks, run_doctor
from rocm_ai_setup.compat import STABILITY_ENVIRONMENT, resolve_profile
from rocm_ai_setup.constants import Constants
from rocm_ai_setup.provision import Layout, create_layout
from rocm_ai_setup.system import GpuInfo, SystemContext

PASS = Constants.CHECK_STATUS_PASS
FAIL = Constants.CHECK_STATUS_FAIL
WARN = Constants.CHECK_STATUS_WARN
SKIP = Constants.CHECK_STATUS_SKIP

IMAGE = "rocm/pytorch:rocm6.4.4_ubuntu24.04_py3.12_pytorch_release_2.7.1"


class FakeDocker:
    """Answers container checks from canned output keyed by the command text."""

    def __init__(self, responses=None):
        self.calls = []
        self.responses = responses or {}

    def run(self, image, command, env=None, group_ids=None):
        self.calls.append({"image": image, "command": command, "env": dict(env or {}), "group_ids": group_ids})
        text = " ".join(command)
        for needle, response in self.responses.items():
            if needle in text:
                return response
        if "rocminfo" in text:
            return 0, "  Name:                    gfx1031\n  Marketing Name:          AMD Radeon RX 6700 XT\n"
        if "ROCm available" in text:
            return 0, "PyTorch version: 2.7.1\nROCm available: True\nGPU count: 1\nGPU name: AMD Radeon RX 6700 XT\n"
        if "pip install" in text:
            return 0, "Successfully installed diffusers transformers\n"
        if "memory_allocated" in text:
            return 0, "GPU available: True\nMemory allocated: 4.00 MB\nGPU configuration successful\n"
        if text.startswith("bash -c env"):
            return 0, "\n".join(f"{k}={v}" for k, v in sorted((env or {}).items())) + "\n"
        return 127, "unknown command"


def make_context(**kwargs):
    defaults = dict(
        os_id="ubuntu", os_name="Ubuntu", os_version="22.04", codename="jammy",
        kernel="6.8.0", hostname="ws", architecture="x86_64",
        gpus=[GpuInfo(pci_address="03:00.0", device_id="73df", gfx_target="gfx1031")],
        rocm_version="6.4.4", device_nodes={"/dev/kfd": True, "/dev/dri": True},
    )
    defaults.update(kwargs)
    return SystemContext(**defaults)


class IntegrationSuiteTest(unittest.TestCase):
    def setUp(self):
        self.profile = resolve_profile("gfx1031", "6.4.4", "pytorch")

    def test_all_checks_pass(self):
        docker = FakeDocker()
        results = IntegrationSuite(docker, IMAGE, self.profile.environment, group_ids=[44, 109]).run()
        self.assertEqual([r.name for r in results],
                         ["rocm_detection", "pytorch_gpu", "precompiled_wheels", "gpu_memory", "stability_env"])
        self.assertTrue(all(r.status == PASS for r in results), results)
        self.assertTrue(all(call["image"] == IMAGE for call in docker.calls))
        self.assertTrue(all(call["group_ids"] == [44, 109] for call in docker.calls))

    def test_check_environment(self):
        docker = FakeDocker()
        IntegrationSuite(docker, IMAGE, {"HSA_OVERRIDE_GFX_VERSION": "10.3.0"}).run()
        wheels_env = docker.calls[2]["env"]
        self.assertEqual(wheels_env["PIP_ONLY_BINARY"], ":all:")
        self.assertEqual(wheels_env["HSA_OVERRIDE_GFX_VERSION"], "10.3.0")
        self.assertIn("--only-binary=:all:", docker.calls[2]["command"])
        self.assertEqual(docker.calls[3]["env"]["PYTORCH_HIP_ALLOC_CONF"], "max_split_size_mb:128")
        for key, value in STABILITY_ENVIRONMENT.items():
            self.assertEqual(docker.calls[4]["env"][key], value)

    def test_source_build_is_a_warning(self):
        docker = FakeDocker({"pip install": (0, "Building wheel for tokenizers (pyproject.toml)\n")})
        result = IntegrationSuite(docker, IMAGE).run(selected=["3"])[0]
        self.assertEqual(result.status, WARN)
        self.assertTrue(result.passed)

    def test_gpu_unavailable_fails(self):
        docker = FakeDocker({"ROCm available": (0, "ROCm available: False\n")})
        result = IntegrationSuite(docker, IMAGE).run(selected=["pytorch_gpu"])[0]
        self.assertEqual(result.status, FAIL)

    def test_rocminfo_without_gpu_agent(self):
        docker = FakeDocker({"rocminfo": (0, "  Name:   AMD Ryzen 7 5800X\n")})
        self.assertEqual(IntegrationSuite(docker, IMAGE).run(selected=["1"])[0].status, FAIL)

    def test_stop_on_failure(self):
        docker = FakeDocker({"rocminfo": (1, "HSA_STATUS_ERROR_OUT_OF_RESOURCES")})
        results = IntegrationSuite(docker, IMAGE).run(stop_on_failure=True)
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].status, FAIL)
        self.assertIn("HSA_STATUS_ERROR_OUT_OF_RESOURCES", results[0].detail)

    def test_tensorflow_skips_torch_checks(self):
        docker = FakeDocker()
        results = IntegrationSuite(docker, "rocm/tensorflow:latest", framework="tensorflow").run()
        statuses = {r.name: r.status for r in results}
        self.assertEqual(statuses["pytorch_gpu"], SKIP)
        self.assertEqual(statuses["gpu_memory"], SKIP)
        self.assertEqual(len(docker.calls), 3)

    def test_unknown_check(self):
        with self.assertRaises(ValueError):
            IntegrationSuite(FakeDocker(), IMAGE).run(selected=["9"])

    def test_default_checks_are_five(self):
        self.assertEqual(len(default_checks()), 5)


class ReportTest(unittest.TestCase):
    def test_summary_and_json(self):
        report = Report("ROCm Docker Integration")
        report.extend([
            CheckResult("rocm_detection", PASS, 1.5, "gfx1031"),
            CheckResult("precompiled_wheels", WARN, 30.0, "May have built from source"),
            CheckResult("gpu_memory", FAIL, 2.0, "no GPU"),
        ])
        self.assertFalse(report.success)
        self.assertEqual([r.name for r in report.failed], ["gpu_memory"])
        self.assertEqual(report.summary(), {"PASS": 1, "WARN": 1, "FAIL": 1, "SKIP": 0, "total": 3})
        self.assertIn("rocm_detection", report.table().get_string())
        report.pprint()

        with tempfile.TemporaryDirectory() as tmp:
            path = report.save_json(tmp, {"hostname": "ws"}, {"image": IMAGE}, timestamp="20250101_000000")
            self.assertEqual(path.name, "rocm_docker_integration_20250101_000000.json")
            data = json.loads(path.read_text())
        self.assertEqual(data["system_info"]["hostname"], "ws")
        self.assertEqual(data["results"][2]["status"], FAIL)
        self.assertEqual(data["metadata"]["image"], IMAGE)


class DoctorTest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.layout = Layout(Path(self.tmp.name) / "Projects", ["models"])
        self.setup_config = {"ubuntu_release": "22.04", "min_rocm_version": "6.0.0", "rocm_version": "6.4.4"}
        self.docker = mock.Mock()
        self.docker.is_installed.return_value = True
        self.docker.is_daemon_running.return_value = True

    def run_doctor(self, context, in_groups=True):
        with mock.patch("rocm_ai_setup.checks.doctor.DockerClient.user_in_group", return_value=in_groups):
            results = run_doctor(context, self.layout, self.setup_config, user="alice", docker=self.docker)
        return {r.name: r for r in results}

    def test_ready_host(self):
        create_layout(self.layout)
        results = self.run_doctor(make_context())
        self.assertTrue(all(r.status == PASS for r in results.values()), results)
        self.assertIn("HSA_OVERRIDE_GFX_VERSION=10.3.0", results["compatibility_profile"].detail)

    def test_problems_are_reported(self):
        context = make_context(
            os_version="24.04",
            rocm_version="5.7.1",
            device_nodes={"/dev/kfd": False, "/dev/dri": True},
            gpus=[],
        )
        self.docker.is_daemon_running.return_value = False
        results = self.run_doctor(context, in_groups=False)
        self.assertEqual(results["ubuntu_release"].status, FAIL)
        self.assertEqual(results["gpu_device_nodes"].status, FAIL)
        self.assertIn("/dev/kfd", results["gpu_device_nodes"].detail)
        self.assertEqual(results["user_groups"].status, FAIL)
        self.assertEqual(results["docker_daemon"].status, FAIL)
        self.assertEqual(results["rocm_version"].status, FAIL)
        self.assertEqual(results["projects_layout"].status, WARN)
        self.assertEqual(results["compatibility_profile"].status, FAIL)

    def test_unsupported_gpu(self):
        context = make_context(gpus=[GpuInfo(device_id="ffff", gfx_target="gfx803")])
        results = self.run_doctor(context)
        self.assertEqual(results["compatibility_profile"].status, FAIL)


if __name__ == "__main__":
    unittest.main()
