"""Combine the single-architecture simulator archives into one fat archive."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from wireguardkit_tooling.artifacts import Artifact, read_architectures
from wireguardkit_tooling.env import BuildEnvironment, PlatformClass
from wireguardkit_tooling.errors import MergeError, ValidationError
from wireguardkit_tooling.helpers import check_file_exists, ensure_dir, format_size, log_section
from wireguardkit_tooling.tools import ToolError, ToolSet

log = logging.getLogger(__name__)


def merge_architectures(
    inputs: Sequence[Artifact],
    output: Path,
    target_name: str,
    tools: ToolSet,
) -> Artifact:
    """Merge thin archives into output; the result must hold exactly the union of their archs.

    Input order does not affect the resulting architecture set.
    """
    if len(inputs) < 2:
        msg = f"Need at least two archives to merge, got {len(inputs)}"
        raise MergeError(msg)
    expected: set[str] = set()
    for a in inputs:
        try:
            check_file_exists(a.path, f"{a.target_name} library")
        except ValidationError as e:
            raise MergeError(str(e)) from e
        if a.is_fat:
            msg = f"{a.path} is already multi-architecture ({sorted(a.archs)})"
            raise MergeError(msg)
        if a.archs & expected:
            msg = f"Architecture {sorted(a.archs)} appears in more than one input"
            raise MergeError(msg)
        expected |= a.archs

    ensure_dir(output.parent)
    output.unlink(missing_ok=True)
    log.info("Combining %s into fat binary...", " and ".join(sorted(expected)))
    try:
        tools.merger.merge([a.path for a in inputs], output)
    except ToolError as e:
        msg = f"Failed to create fat binary {output}: {e}"
        raise MergeError(msg) from e

    try:
        size = check_file_exists(output, "Fat binary")
        found = read_architectures(output, tools)
    except ValidationError as e:
        raise MergeError(str(e)) from e
    if found != expected:
        msg = (
            f"Fat binary {output} has architectures {sorted(found)}, "
            f"expected {sorted(expected)}"
        )
        raise MergeError(msg)
    return Artifact(path=output, target_name=target_name, archs=frozenset(found), size_bytes=size)


def merge_simulator_architectures(
    simulator_artifacts: Sequence[Artifact],
    env: BuildEnvironment,
    tools: ToolSet,
) -> Artifact:
    """Merge the simulator-class phase 1 outputs into <libraries>/ios-simulator/libwg-go.a."""
    log_section("Creating Simulator Fat Binary")
    sim_names = {t.name for t in env.targets_for(PlatformClass.SIMULATOR)}
    inputs = [a for a in simulator_artifacts if a.target_name in sim_names]
    missing = sim_names - {a.target_name for a in inputs}
    if missing:
        msg = f"Simulator library not built: {', '.join(sorted(missing))}"
        raise MergeError(msg)
    fat = merge_architectures(
        inputs, env.archive_path(env.simulator_fat_target), env.simulator_fat_target, tools
    )
    log.info("✓ Created simulator fat binary: %s", format_size(fat.size_bytes))
    return fat
