"""`wireguardkit build-go | build-xcframework | verify | build | check-outputs | clean`."""

import argparse
import sys
from pathlib import Path

from wireguardkit_tooling import phases

PHASE_COMMANDS = {
    "build-go": ("Phase 1: cross-compile WireGuard Go for every iOS target", phases.run_build_go),
    "build-xcframework": (
        "Phase 2: package the phase 1 libraries into WireGuardKit.xcframework",
        phases.run_build_xcframework,
    ),
    "verify": ("Phase 3: audit the xcframework (exit 1 if any check fails)", phases.run_verify),
    "build": ("Run phases 1-3 and check the package outputs", phases.run_build),
    "check-outputs": (
        "Check the paths consumed by the package manager hook",
        phases.run_check_outputs,
    ),
}


def _parser(command: str, description: str) -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog=f"wireguardkit {command}", description=description)
    ap.add_argument(
        "--project-root",
        type=Path,
        default=None,
        help="Project root (default: cwd)",
    )
    ap.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML overrides (default: wireguardkit.yaml or $WIREGUARDKIT_CONFIG)",
    )
    ap.add_argument("--verbose", "-v", action="store_true", help="Log tool command lines")
    return ap


def run_phase_argv(command: str, argv: list[str] | None = None) -> None:
    """Parse common flags for a phase command and exit with its status."""
    if argv is None:
        argv = sys.argv[2:] if len(sys.argv) > 2 else []  # skip 'wireguardkit <command>'
    description, runner = PHASE_COMMANDS[command]
    args = _parser(command, description).parse_args(argv)
    rc = runner(project_root=args.project_root, config_path=args.config, verbose=args.verbose)
    sys.exit(rc)


def run_clean_argv(argv: list[str] | None = None) -> None:
    if argv is None:
        argv = sys.argv[2:] if len(sys.argv) > 2 else []
    ap = _parser("clean", "Remove .build/ and Artifacts/ (resets the patched Go runtime)")
    ap.add_argument(
        "--intermediate",
        action="store_true",
        help="Only remove .build/, keep Artifacts/",
    )
    args = ap.parse_args(argv)
    rc = phases.run_clean(
        intermediate_only=args.intermediate,
        project_root=args.project_root,
        config_path=args.config,
        verbose=args.verbose,
    )
    sys.exit(rc)


# Standalone console scripts, one per phase, invoked with no arguments.


def build_go_main() -> None:
    run_phase_argv("build-go", sys.argv[1:])


def build_xcframework_main() -> None:
    run_phase_argv("build-xcframework", sys.argv[1:])


def verify_main() -> None:
    run_phase_argv("verify", sys.argv[1:])
