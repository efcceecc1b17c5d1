"""The three pipeline phases, the all-in-one build, and cleanup.

Each ``run_*`` function is a top-level entry point: it configures phase-labelled
logging, runs the phase, and maps any PipelineError to exit code 1.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from pathlib import Path

from wireguardkit_tooling.artifacts import Artifact
from wireguardkit_tooling.bundle import (
    DistributableBundle,
    assemble_bundle,
    assemble_variant,
    load_phase1_artifacts,
    validate_bundle,
)
from wireguardkit_tooling.compile import build_all
from wireguardkit_tooling.consumer import check_consumer_paths
from wireguardkit_tooling.env import BuildEnvironment, PlatformClass, load_environment
from wireguardkit_tooling.errors import PipelineError, VerificationError
from wireguardkit_tooling.helpers import (
    configure_logging,
    directory_size,
    ensure_dir,
    format_size,
    log_section,
)
from wireguardkit_tooling.merge import merge_simulator_architectures
from wireguardkit_tooling.prereqs import (
    check_build_prerequisites,
    check_bundle_prerequisites,
    check_verify_prerequisites,
)
from wireguardkit_tooling.toolchain import prepare
from wireguardkit_tooling.tools import ToolSet, default_toolset
from wireguardkit_tooling.verify import VerificationReport, print_report, verify

log = logging.getLogger(__name__)


# --- Phase bodies (raise PipelineError) ---


def build_go(env: BuildEnvironment, tools: ToolSet) -> dict[str, Artifact]:
    """Phase 1: prerequisites, patched runtime, every matrix target, simulator fat archive."""
    log_section("WireGuard Go Build - Phase 1")
    check_build_prerequisites(env, tools)
    toolchain_root = prepare(tools.compiler.goroot(), env)
    artifacts = build_all(env, toolchain_root, tools)
    simulator = [
        a
        for a in artifacts
        if env.target(a.target_name).platform_class is PlatformClass.SIMULATOR
    ]
    fat = merge_simulator_architectures(simulator, env, tools)

    log_section("Build Summary")
    log.info("✓ WireGuard Go libraries built successfully")
    log.info("Output files:")
    for pc in PlatformClass:
        log.info("  %-20s %s", f"{pc.value.capitalize()}:", env.binary_source(pc))
    out = {a.target_name: a for a in artifacts}
    out[fat.target_name] = fat
    return out


def build_xcframework(env: BuildEnvironment, tools: ToolSet) -> DistributableBundle:
    """Phase 2: frameworks for both platform classes, xcframework, structural validation."""
    log_section("XCFramework Build - Phase 2")
    check_bundle_prerequisites(env)
    binaries = load_phase1_artifacts(env, tools)

    log_section("Creating Framework Structures")
    ensure_dir(env.frameworks_dir)
    device = assemble_variant(PlatformClass.DEVICE, binaries[PlatformClass.DEVICE], env)
    simulator = assemble_variant(PlatformClass.SIMULATOR, binaries[PlatformClass.SIMULATOR], env)
    bundle = assemble_bundle(device, simulator, env, tools)
    validate_bundle(bundle, env, tools)

    log_section("Build Summary")
    log.info("✓ XCFramework built successfully")
    log.info("Output: %s", bundle.path)
    log.info("Total size: %s", format_size(directory_size(bundle.path)))
    log.info("Platforms:")
    for layout in env.variants():
        log.info("  ✓ %s (%s)", layout.library_identifier, layout.label)
    log.info("Next step: wireguardkit verify")
    return bundle


def verify_bundle(env: BuildEnvironment, tools: ToolSet) -> VerificationReport:
    """Phase 3: full audit; raises VerificationError after reporting when any check failed."""
    log_section("XCFramework Verification - Phase 3")
    check_verify_prerequisites(env)
    report = verify(env, tools)
    print_report(report)
    if not report.ok:
        msg = f"{report.failed_count} of {len(report.results)} checks failed"
        raise VerificationError(msg)
    return report


def build_everything(env: BuildEnvironment, tools: ToolSet) -> VerificationReport:
    build_go(env, tools)
    build_xcframework(env, tools)
    report = verify_bundle(env, tools)
    check_consumer_paths(env)
    return report


def clean(env: BuildEnvironment, intermediate_only: bool = False) -> list[Path]:
    """Remove the build root (resetting the toolchain) and, unless intermediate_only, artifacts."""
    what = "intermediate build files" if intermediate_only else "build artifacts"
    log.info("Cleaning %s...", what)
    targets = [env.build_root] if intermediate_only else [env.build_root, env.artifacts_root]
    removed: list[Path] = []
    for d in targets:
        if d.is_dir():
            shutil.rmtree(d)
            log.info("✓ Removed %s", d)
            removed.append(d)
    return removed


# --- Entry points (return exit codes) ---


def run_phase(
    phase: str,
    body: Callable[[BuildEnvironment, ToolSet], object],
    project_root: Path | None = None,
    config_path: Path | None = None,
    tools: ToolSet | None = None,
    verbose: bool = False,
) -> int:
    """Run body with a freshly loaded environment. Returns 0, or 1 on PipelineError/OSError."""
    configure_logging(phase, verbose=verbose)
    try:
        env = load_environment(project_root, config_path)
        body(env, tools if tools is not None else default_toolset())
    except PipelineError as e:
        log.error("%s: %s", e.category, e)
        return 1
    except OSError as e:
        log.error("Filesystem error: %s", e)
        return 1
    return 0


def run_build_go(**kwargs) -> int:
    return run_phase("build-go", build_go, **kwargs)


def run_build_xcframework(**kwargs) -> int:
    return run_phase("build-xcframework", build_xcframework, **kwargs)


def run_verify(**kwargs) -> int:
    return run_phase("verify", verify_bundle, **kwargs)


def run_build(**kwargs) -> int:
    return run_phase("build", build_everything, **kwargs)


def run_check_outputs(**kwargs) -> int:
    return run_phase("check-outputs", lambda env, _tools: check_consumer_paths(env), **kwargs)


def run_clean(intermediate_only: bool = False, **kwargs) -> int:
    return run_phase("clean", lambda env, _tools: clean(env, intermediate_only), **kwargs)
