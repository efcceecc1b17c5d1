"""Main CLI entry point for WireGuardKit build tooling."""

import sys

from wireguardkit_tooling.cli import build as build_cli


def _usage() -> None:
    print(
        "Usage: wireguardkit <command> [--project-root DIR] [--config FILE] [-v]",
        file=sys.stderr,
    )
    print("Commands:", file=sys.stderr)
    for name, (description, _runner) in build_cli.PHASE_COMMANDS.items():
        print(f"  {name:<18} - {description}", file=sys.stderr)
    print(
        f"  {'clean':<18} - Remove build outputs (--intermediate keeps Artifacts/)",
        file=sys.stderr,
    )


def main() -> None:
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        _usage()
        sys.exit(1)

    command = sys.argv[1]
    if command in ("-h", "--help"):
        _usage()
        sys.exit(0)
    if command in build_cli.PHASE_COMMANDS:
        build_cli.run_phase_argv(command)
    elif command == "clean":
        build_cli.run_clean_argv()
    else:
        print(f"Error: Unknown command: {command}", file=sys.stderr)
        _usage()
        sys.exit(1)


if __name__ == "__main__":
    main()
