"""Isolated, patched copy of the Go runtime for iOS cross-compilation.

The copy lives at <build>/goroot and carries a zero-byte ``.prepared`` sentinel once
every runtime patch has been attempted. A second run sees the sentinel and reuses the
copy untouched; deleting the directory returns it to UNPREPARED.
No lock guards the sentinel: two pipelines sharing one build root are unsupported.
"""

from __future__ import annotations

import logging
import shutil
from enum import Enum
from pathlib import Path

from wireguardkit_tooling.env import BuildEnvironment
from wireguardkit_tooling.errors import PreparationError
from wireguardkit_tooling.helpers import log_section
from wireguardkit_tooling.tools import ToolError, run_tool

log = logging.getLogger(__name__)

SENTINEL = ".prepared"
ALREADY_APPLIED_MARKER = "Reversed (or previously applied) patch detected"
# Relative to the toolchain root; never copied.
EXCLUDED_DIRS = ("pkg/obj/go-build",)


class ToolchainState(Enum):
    UNPREPARED = "unprepared"
    PREPARED = "prepared"


class PatchOutcome(Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already-applied"
    FAILED = "failed"


def toolchain_state(root: Path) -> ToolchainState:
    return ToolchainState.PREPARED if (root / SENTINEL).is_file() else ToolchainState.UNPREPARED


def transition(root: Path, state: ToolchainState) -> ToolchainState:
    """Move root to state: PREPARED writes the sentinel, UNPREPARED deletes the whole root."""
    if state is ToolchainState.PREPARED:
        root.mkdir(parents=True, exist_ok=True)
        (root / SENTINEL).touch()
    elif root.exists():
        shutil.rmtree(root)
    return state


def _ignore_excluded(source_root: Path):
    excluded = {(source_root / rel).resolve() for rel in EXCLUDED_DIRS}

    def ignore(directory: str, names: list[str]) -> set[str]:
        d = Path(directory).resolve()
        return {n for n in names if (d / n) in excluded}

    return ignore


def copy_toolchain(source_root: Path, dest: Path) -> None:
    """Mirror source_root into dest (stale contents removed), skipping the build cache."""
    if dest.exists():
        shutil.rmtree(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        shutil.copytree(source_root, dest, symlinks=True, ignore=_ignore_excluded(source_root))
    except (OSError, shutil.Error) as e:
        msg = f"Failed to copy Go runtime {source_root} -> {dest}: {e}"
        raise PreparationError(msg) from e


def find_patches(env: BuildEnvironment) -> list[Path]:
    """Runtime patches shipped with the wrapped library, in name order."""
    if not env.go_source_dir.is_dir():
        return []
    return sorted(p for p in env.go_source_dir.glob(env.patch_glob) if p.is_file())


def apply_patch(patch_file: Path, root: Path) -> PatchOutcome:
    """Apply one unified diff with ``patch -p1 -f -N`` inside root."""
    try:
        r = run_tool(
            ["patch", "-p1", "-f", "-N", "-r-", "-d", str(root)],
            input=patch_file.read_text(errors="replace"),
            check=False,
        )
    except ToolError:
        log.warning("patch not in PATH; cannot apply %s", patch_file.name)
        return PatchOutcome.FAILED
    output = (r.stdout or "") + (r.stderr or "")
    if r.returncode == 0:
        return PatchOutcome.APPLIED
    if ALREADY_APPLIED_MARKER in output:
        return PatchOutcome.ALREADY_APPLIED
    log.debug("patch %s output: %s", patch_file.name, output[:500])
    return PatchOutcome.FAILED


def prepare(source_root: Path | None, env: BuildEnvironment) -> Path:
    """Return a prepared toolchain root under env.build_root, creating it if needed.

    Raises PreparationError when source_root is unknown/missing or the copy fails.
    Patch failures are warnings: the sentinel is written once every patch was attempted.
    """
    log_section("Preparing Go Runtime for iOS")
    root = env.toolchain_root

    if toolchain_state(root) is ToolchainState.PREPARED:
        log.warning("Go runtime already patched, skipping...")
        return root

    if source_root is None:
        msg = "Could not determine GOROOT"
        raise PreparationError(msg)
    if not source_root.is_dir():
        msg = f"GOROOT not found: {source_root}"
        raise PreparationError(msg)

    log.info("Using system Go runtime: %s", source_root)
    log.info("Copying Go runtime to build directory...")
    copy_toolchain(source_root, root)

    log.info("Applying iOS patches to Go runtime...")
    applied = 0
    for patch_file in find_patches(env):
        log.info("Applying patch: %s", patch_file.name)
        outcome = apply_patch(patch_file, root)
        if outcome is PatchOutcome.APPLIED:
            applied += 1
        elif outcome is PatchOutcome.ALREADY_APPLIED:
            log.warning("Patch may have already been applied: %s", patch_file.name)
        else:
            log.warning("Patch failed to apply: %s", patch_file.name)

    if applied == 0:
        log.warning("No patches were applied")
    else:
        log.info("✓ Applied %d patch(es)", applied)

    transition(root, ToolchainState.PREPARED)
    log.info("✓ Go runtime prepared for iOS")
    return root
