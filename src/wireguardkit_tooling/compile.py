"""Cross-compile the wrapped Go library for every target in the matrix.

Targets are built one after another in matrix order. Each compiler invocation gets
its own environment mapping (os.environ copy plus target overrides), so nothing set
for one target is visible to the next.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from wireguardkit_tooling.artifacts import Artifact, validate_artifact
from wireguardkit_tooling.env import BuildEnvironment, BuildTarget
from wireguardkit_tooling.errors import BuildError, MissingPrerequisiteError
from wireguardkit_tooling.helpers import ensure_dir, format_size, log_section
from wireguardkit_tooling.tools import ToolError, ToolSet

log = logging.getLogger(__name__)


def compose_cflags(target: BuildTarget, sdk_path: Path, env: BuildEnvironment) -> str:
    """Base CFLAGS + min-version flag for the SDK + sysroot + arch."""
    return f"{env.cflags} {env.min_version_flag(target)} -isysroot {sdk_path} -arch {target.arch}"


def target_environment(
    target: BuildTarget,
    env: BuildEnvironment,
    toolchain_root: Path,
    sdk_path: Path,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Environment for one compiler invocation. base defaults to a copy of os.environ."""
    out = dict(os.environ if base is None else base)
    cflags = compose_cflags(target, sdk_path, env)
    out.update(
        {
            "GOROOT": str(toolchain_root),
            "CGO_ENABLED": "1",
            "CGO_CFLAGS": cflags,
            "CGO_LDFLAGS": cflags,
            "GOOS": target.go_os,
            "GOARCH": target.go_arch,
            "CC": env.cc,
        }
    )
    return out


def build_target(
    target: BuildTarget,
    env: BuildEnvironment,
    toolchain_root: Path,
    tools: ToolSet,
) -> Artifact:
    """Compile one target to <libraries>/<target>/libwg-go.a and validate it.

    Raises BuildError when the compiler fails, ValidationError when the output is
    missing/empty, has any architecture other than target.arch, or lacks the exports.
    """
    log.info("Building for %s (%s on %s)...", target.name, target.arch, target.sdk)
    output = env.archive_path(target.name)
    ensure_dir(output.parent)

    try:
        sdk_path = tools.sdk_locator.sdk_path(target.sdk)
    except ToolError as e:
        msg = f"SDK '{target.sdk}' not found for {target.name}: {e}"
        raise MissingPrerequisiteError(msg) from e

    try:
        tools.compiler.build_archive(
            output,
            cwd=env.go_source_dir,
            env=target_environment(target, env, toolchain_root, sdk_path),
            ldflags=env.go_ldflags,
            tags=env.go_tags,
            build_mode=env.go_build_mode,
        )
    except ToolError as e:
        msg = f"Failed to build {target.name}: {e}"
        raise BuildError(msg) from e

    # c-archive mode writes a header next to the archive; the framework ships its own.
    output.with_suffix(".h").unlink(missing_ok=True)

    artifact = validate_artifact(output, target.name, {target.arch}, env, tools)
    log.info("✓ Built %s: %s", target.name, format_size(artifact.size_bytes))
    return artifact


def build_all(env: BuildEnvironment, toolchain_root: Path, tools: ToolSet) -> list[Artifact]:
    """Build every matrix target in order; the first failure aborts the rest."""
    log_section("Cross-Compiling WireGuard Go")
    return [build_target(t, env, toolchain_root, tools) for t in env.targets]
