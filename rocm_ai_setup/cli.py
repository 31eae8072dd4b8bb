"""Command line entry point: rocm-ai-setup {command} ..."""

import argparse
import json
import os
import shutil
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .checks import IntegrationSuite, Report, run_doctor
from .compat import FRAMEWORKS, ROCM_RELEASES, profile_from_context, resolve_profile
from .config import ConfigHelper
from .constants import Constants
from .containers import DockerClient, build_compose, get_gpu_group_ids, service_name, write_compose
from .exceptions import (
    SetupError,
    ConfigurationError,
    PrerequisiteError,
    ROCmVersionError,
    ROCmNotFoundError,
    RepositoryError,
    DockerError,
)
from .logger import log, set_log_level
from .provision import (
    AnsibleRunner,
    Layout,
    Repository,
    create_layout,
    detect_real_user,
    prerequisites,
    setup_github_auth,
    user_home,
    verify_layout,
)
from .system import SystemDetector

EXIT_CODES = {
    ConfigurationError: Constants.EXIT_CONFIG_ERROR,
    PrerequisiteError: Constants.EXIT_REQUIREMENT_ERROR,
    ROCmNotFoundError: Constants.EXIT_REQUIREMENT_ERROR,
    ROCmVersionError: Constants.EXIT_REQUIREMENT_ERROR,
}


def next_steps(compose_file: Optional[Path] = None, service: str = "pytorch-rocm") -> List[str]:
    steps = [
        "Reboot your system: sudo reboot",
        "After reboot, run the container checks: rocm-ai-setup test",
    ]
    if compose_file is None:
        steps.append("Write a compose file for your GPU: rocm-ai-setup compose")
        steps.append(f"Start the container: docker compose up -d {service}")
    else:
        steps.append(f"Start the container: docker compose -f {compose_file} up -d {service}")
    return steps


def exit_code_for(error: SetupError) -> int:
    for cls in type(error).__mro__:
        if cls in EXIT_CODES:
            return EXIT_CODES[cls]
    return Constants.EXIT_FAILURE


class Context:
    """Loaded configuration sections shared by the command handlers."""

    def __init__(self, args: argparse.Namespace):
        config_file = ConfigHelper.find_config_file(args.config)
        try:
            self.config = ConfigHelper.load_config(config_file, required=bool(args.config))
        except FileNotFoundError as e:
            raise ConfigurationError(str(e))
        ConfigHelper.configure_logging(self.config)
        if args.verbose:
            set_log_level(Constants.LOG_LEVEL_DEBUG)
        if args.log_file:
            log.enable_file_logging(args.log_file)

        self.setup = ConfigHelper.get_setup_config(self.config)
        self.layout_config = ConfigHelper.get_layout_config(self.config)
        self.docker = ConfigHelper.get_docker_config(self.config)
        self.results = ConfigHelper.get_results_config(self.config)

    @property
    def target_user(self) -> str:
        return self.setup['target_user'] or detect_real_user()

    @property
    def target_home(self) -> str:
        return user_home(self.target_user)

    def layout(self) -> Layout:
        """Projects layout; under sudo ``~`` is the target user's home, not /root."""
        home = self.target_home if os.geteuid() == 0 else None
        return Layout.from_config(self.layout_config, home=home)

    def profile(self, args: argparse.Namespace, context=None):
        """Profile from CLI overrides, config, then the detected GPU."""
        gfx_target = getattr(args, 'gfx', None) or self.docker['gfx_target']
        rocm_version = getattr(args, 'rocm_version', None) or self.setup['rocm_version']
        framework = getattr(args, 'framework', None) or self.docker['framework']
        kwargs = dict(
            stability=self.docker['stability'],
            image=self.docker['image'] or None,
            extra_environment=self.docker['environment'],
        )
        if gfx_target:
            return resolve_profile(gfx_target, rocm_version, framework, **kwargs)
        if context is None:
            context = SystemDetector().detect_all(verbose=False)
        return profile_from_context(context, rocm_version, framework, **kwargs)


def print_banner(title: str):
    print(Constants.SEPARATOR_LINE)
    print(title)
    print(Constants.SEPARATOR_LINE)


def print_next_steps(compose_file: Optional[Path] = None, service: str = "pytorch-rocm"):
    print()
    print("Next steps:")
    for i, step in enumerate(next_steps(compose_file, service), start=1):
        print(f"{i}. {step}")
    print()


def playbook_args(ctx: Context) -> dict:
    """Extra variables passed to the setup playbook."""
    layout = ctx.layout()
    extra_vars = {
        'rocm_version': ctx.setup['rocm_version'],
        'target_home': ctx.target_home,
        'projects_dir': str(layout.root),
        'layout_subdirs': list(layout.subdirs),
    }
    release = ROCM_RELEASES.get(ctx.setup['rocm_version'])
    if release:
        extra_vars['amdgpu_install_deb'] = release['amdgpu_install_deb']
    return extra_vars


def do_bootstrap(args, ctx: Context) -> int:
    print_banner("AI System Quick Install")
    prerequisites.run_all(ctx.setup)

    repo = Repository(ctx.setup['repo_url'], args.target_dir or ctx.setup['target_dir'])
    reclone = True if args.reclone else (False if args.update else None)
    if repo.exists():
        # A failed pull keeps the checkout; only a failed clone leads to the auth flow
        repo_dir = repo.clone_or_update(reclone=reclone)
    else:
        try:
            repo_dir = repo.clone()
        except RepositoryError:
            if not sys.stdin.isatty():
                raise
            log.warning("Clone failed; configuring GitHub authentication")
            setup_github_auth()
            repo_dir = repo.clone_or_update(reclone=reclone)

    # Playbooks shipped in the repository take precedence over the bundled copies
    playbook_dir = repo_dir / "ansible"
    if not (playbook_dir / Constants.SETUP_PLAYBOOK).is_file():
        playbook_dir = Path(ctx.setup['playbook_dir'])

    runner = AnsibleRunner(playbook_dir)
    runner.ensure_installed()
    runner.run_setup(ctx.target_user, playbook_args(ctx))

    print_banner("Installation Complete!")
    print_next_steps(service=service_name(ctx.docker['framework']))
    return Constants.EXIT_SUCCESS


def do_install(args, ctx: Context) -> int:
    print_banner("AMD GPU AI System Setup")
    if not args.skip_prerequisites:
        prerequisites.run_all(ctx.setup)

    runner = AnsibleRunner(ctx.setup['playbook_dir'])
    runner.ensure_installed()
    runner.run_setup(ctx.target_user, playbook_args(ctx))

    layout = ctx.layout()
    as_root = os.geteuid() == 0
    if as_root:
        log.info(f"Running as root; the playbook created {layout.root} for {ctx.target_user}")
    else:
        create_layout(layout)

    compose_file = None
    service = service_name(ctx.docker['framework'])
    try:
        profile = ctx.profile(args)
        service = service_name(profile.framework)
        text = build_compose([profile], layout, shm_size=ctx.docker['shm_size'],
                             extra_volumes=ctx.docker['volumes'])
        compose_file = write_compose(str(layout.root / Constants.DEFAULT_COMPOSE_FILE), text, force=args.force)
    except (SetupError, FileExistsError) as e:
        log.warning(f"Compose file not written: {e}")
        log.warning("Run 'rocm-ai-setup compose' after rebooting")

    if compose_file is not None and as_root:
        chown_to_user(compose_file, ctx.target_user)

    print_banner("Setup Complete!")
    print_next_steps(compose_file, service)
    return Constants.EXIT_SUCCESS


def chown_to_user(path: Path, user: str) -> None:
    """Hand a file written under sudo over to ``user``."""
    try:
        shutil.chown(path, user=user)
    except (LookupError, OSError) as e:
        log.warning(f"Could not change owner of {path} to {user}: {e}")


def do_verify(args, ctx: Context) -> int:
    user = args.user or ctx.target_user
    home = args.home or user_home(user)
    runner = AnsibleRunner(ctx.setup['playbook_dir'])
    returncode = runner.run_verify(user, home)
    return Constants.EXIT_SUCCESS if returncode == 0 else Constants.EXIT_TEST_FAILURE


def do_detect(args, ctx: Context) -> int:
    context = SystemDetector().detect_all(verbose=not args.json)
    if args.json:
        data = context.to_dict()
        data['logging'] = log.get_log_info()
        print(json.dumps(data, indent=2, default=str))
    else:
        SystemDetector.print_system_summary(context)
    return Constants.EXIT_SUCCESS


def do_profile(args, ctx: Context) -> int:
    profile = ctx.profile(args)
    if args.env_only:
        for key, value in profile.environment.items():
            print(f"{key}={value}")
        return Constants.EXIT_SUCCESS
    if args.json:
        print(json.dumps(profile.to_dict(), indent=2))
        return Constants.EXIT_SUCCESS

    print(f"GPU target:   {profile.gfx_target}")
    print(f"ROCm:         {profile.rocm_version}")
    print(f"Framework:    {profile.framework}")
    print(f"Image:        {profile.image}")
    print(f"HSA override: {profile.hsa_override or 'none'}")
    print(f"Stability:    {'on' if profile.stability else 'off'}")
    print("Environment:")
    for key, value in profile.environment.items():
        print(f"  {key}={value}")
    for note in profile.notes:
        print(f"Note: {note}")
    return Constants.EXIT_SUCCESS


def do_layout(args, ctx: Context) -> int:
    layout = ctx.layout()
    if args.check:
        missing = verify_layout(layout)
        for path in missing:
            log.warning(f"Missing: {path}")
        if missing:
            return Constants.EXIT_TEST_FAILURE
        log.info(f"Layout complete under {layout.root}")
        return Constants.EXIT_SUCCESS
    create_layout(layout, dry_run=args.dry_run)
    return Constants.EXIT_SUCCESS


def do_compose(args, ctx: Context) -> int:
    layout = ctx.layout()
    frameworks = args.framework or [ctx.docker['framework']]
    context = None
    if not (args.gfx or ctx.docker['gfx_target']):
        context = SystemDetector().detect_all(verbose=False)

    profiles = []
    for framework in frameworks:
        args_for = argparse.Namespace(gfx=args.gfx, rocm_version=args.rocm_version, framework=framework)
        profiles.append(ctx.profile(args_for, context))

    text = build_compose(profiles, layout, shm_size=ctx.docker['shm_size'],
                         extra_env=dict(args.env or []), extra_volumes=ctx.docker['volumes'])
    if args.stdout:
        print(text, end="")
        return Constants.EXIT_SUCCESS

    output = args.output or str(layout.root / Constants.DEFAULT_COMPOSE_FILE)
    try:
        path = write_compose(output, text, force=args.force)
    except FileExistsError as e:
        log.error(str(e))
        return Constants.EXIT_FAILURE
    log.info(f"Start with: docker compose -f {path} up -d {service_name(profiles[0].framework)}")
    return Constants.EXIT_SUCCESS


def do_test(args, ctx: Context) -> int:
    docker = DockerClient()
    docker.ensure_available()

    context = SystemDetector().detect_all(verbose=False)
    SystemDetector.log_system_info(context)
    profile = ctx.profile(args, context)
    image = args.image or profile.image

    try:
        group_ids = list(get_gpu_group_ids().values())
    except DockerError as e:
        log.warning(f"{e}; running without group_add")
        group_ids = None

    if args.pull:
        docker.pull(image)

    suite = IntegrationSuite(docker, image, profile.environment, profile.framework, group_ids)
    try:
        results = suite.run(selected=args.check, stop_on_failure=args.stop_on_failure)
    except ValueError as e:
        log.error(str(e))
        return Constants.EXIT_FAILURE

    report = Report("ROCm Docker Integration")
    report.extend(results)
    report.pprint()
    if ctx.results['save_json']:
        report.save_json(ctx.results['output_dir'], context.to_dict(),
                         metadata={'image': image, 'profile': profile.to_dict()})
    return Constants.EXIT_SUCCESS if report.success else Constants.EXIT_TEST_FAILURE


def do_doctor(args, ctx: Context) -> int:
    context = SystemDetector().detect_all(verbose=False)
    results = run_doctor(context, ctx.layout(), ctx.setup, ctx.docker, user=args.user or ctx.target_user)
    report = Report("Readiness")
    report.extend(results)
    report.pprint()
    return Constants.EXIT_SUCCESS if report.success else Constants.EXIT_TEST_FAILURE


def env_assignment(text: str):
    key, sep, value = text.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got '{text}'")
    return key, value


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        "rocm-ai-setup",
        description="Provision an Ubuntu workstation for ROCm AI containers",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--config", help="Configuration file (default: search standard locations)")
    p.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    p.add_argument("--log-file", help="Also write logs to this file (rotated)")
    sub_p = p.add_subparsers(dest="command", required=True)

    def add_profile_options(command_p: argparse.ArgumentParser, multiple_frameworks: bool = False):
        command_p.add_argument("--gfx", help="GPU target, e.g. gfx1031 (default: detected)")
        command_p.add_argument("--rocm-version", help="ROCm release (default: Setup.ROCmVersion)")
        if multiple_frameworks:
            command_p.add_argument("--framework", choices=FRAMEWORKS, action="append",
                                   help="Framework service to include (repeatable)")
        else:
            command_p.add_argument("--framework", choices=FRAMEWORKS, help="Container framework")

    bootstrap_p = sub_p.add_parser("bootstrap", help="Clone the setup repository and run the setup playbook")
    bootstrap_p.set_defaults(func=do_bootstrap)
    bootstrap_p.add_argument("--target-dir", help="Clone destination (default: Setup.TargetDir)")
    group = bootstrap_p.add_mutually_exclusive_group()
    group.add_argument("--reclone", action="store_true", help="Remove an existing checkout and clone again")
    group.add_argument("--update", action="store_true", help="Pull an existing checkout without asking")

    install_p = sub_p.add_parser("install", help="Install drivers, ROCm and Docker with the bundled playbook")
    install_p.set_defaults(func=do_install)
    install_p.add_argument("--skip-prerequisites", action="store_true", help="Skip host prerequisite checks")
    install_p.add_argument("--force", action="store_true", help="Overwrite an existing compose file")

    verify_p = sub_p.add_parser("verify", help="Run the verification playbook")
    verify_p.set_defaults(func=do_verify)
    verify_p.add_argument("--user", help="User to verify (default: detected real user)")
    verify_p.add_argument("--home", help="Home directory of the user")

    detect_p = sub_p.add_parser("detect", help="Show platform, GPU and ROCm information")
    detect_p.set_defaults(func=do_detect)
    detect_p.add_argument("--json", action="store_true", help="Machine readable output")

    profile_p = sub_p.add_parser("profile", help="Show the container profile for a GPU/ROCm pairing")
    profile_p.set_defaults(func=do_profile)
    add_profile_options(profile_p)
    profile_p.add_argument("--env-only", action="store_true", help="Print only KEY=VALUE environment lines")
    profile_p.add_argument("--json", action="store_true", help="Machine readable output")

    layout_p = sub_p.add_parser("layout", help="Create the projects directory layout")
    layout_p.set_defaults(func=do_layout)
    layout_p.add_argument("--check", action="store_true", help="Only report missing directories")
    layout_p.add_argument("--dry-run", action="store_true", help="Show what would be created")

    compose_p = sub_p.add_parser("compose", help="Write a Docker Compose file for the GPU")
    compose_p.set_defaults(func=do_compose)
    add_profile_options(compose_p, multiple_frameworks=True)
    compose_p.add_argument("--output", "-o", help="Compose file path (default: <projects>/docker-compose.yml)")
    compose_p.add_argument("--force", action="store_true", help="Overwrite an existing file")
    compose_p.add_argument("--stdout", action="store_true", help="Print instead of writing")
    compose_p.add_argument("--env", action="append", type=env_assignment, metavar="KEY=VALUE",
                           help="Extra service environment variable (repeatable)")

    test_p = sub_p.add_parser("test", help="Run the ROCm container integration checks")
    test_p.set_defaults(func=do_test)
    add_profile_options(test_p)
    test_p.add_argument("--image", help="Image to test (default: profile image)")
    test_p.add_argument("--check", action="append", metavar="N",
                        help="Run only this check (number or name, repeatable)")
    test_p.add_argument("--pull", action="store_true", help="Pull the image first")
    test_p.add_argument("--stop-on-failure", action="store_true", help="Stop after the first failed check")

    doctor_p = sub_p.add_parser("doctor", help="Check host readiness without Ansible")
    doctor_p.set_defaults(func=do_doctor)
    doctor_p.add_argument("--user", help="User whose group membership is checked")

    return p


def main(cl_args: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(cl_args)
    try:
        ctx = Context(args)
        return args.func(args, ctx)
    except SetupError as e:
        log.error(str(e))
        return exit_code_for(e)
    except KeyboardInterrupt:
        log.error("Interrupted")
        return Constants.EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
