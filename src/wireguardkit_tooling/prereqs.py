"""Prerequisite checks run at the start of each phase."""

from __future__ import annotations

import logging

from wireguardkit_tooling.env import BuildEnvironment, PlatformClass
from wireguardkit_tooling.errors import MissingPrerequisiteError, ValidationError
from wireguardkit_tooling.helpers import check_file_exists, log_section, version_at_least
from wireguardkit_tooling.tools import ToolError, ToolSet

log = logging.getLogger(__name__)


def check_go_installed(env: BuildEnvironment, tools: ToolSet) -> str:
    version = tools.compiler.version()
    if version is None:
        msg = (
            "Go is required but not installed. Install with `brew install go` or from "
            f"https://golang.org/dl/ (minimum Go {env.min_go_version})"
        )
        raise MissingPrerequisiteError(msg)
    log.info("Found Go %s", version)
    try:
        ok = version_at_least(version, env.min_go_version)
    except ValueError as e:
        msg = f"Could not parse Go version {version!r}"
        raise MissingPrerequisiteError(msg) from e
    if not ok:
        msg = f"Go version {version} is too old; minimum required version: Go {env.min_go_version}"
        raise MissingPrerequisiteError(msg)
    return version


def check_xcode_installed(env: BuildEnvironment, tools: ToolSet) -> str:
    version = tools.bundler.version()
    if version is None:
        msg = "Xcode command line tools are required but not installed. Run: xcode-select --install"
        raise MissingPrerequisiteError(msg)
    log.info("Found Xcode %s", version)
    try:
        ok = version_at_least(version, env.min_xcode_version)
    except ValueError as e:
        msg = f"Could not parse Xcode version {version!r}"
        raise MissingPrerequisiteError(msg) from e
    if not ok:
        msg = f"Xcode {version} is too old; minimum required version: Xcode {env.min_xcode_version}"
        raise MissingPrerequisiteError(msg)
    return version


def check_sdk(sdk: str, tools: ToolSet) -> None:
    try:
        path = tools.sdk_locator.sdk_path(sdk)
    except ToolError as e:
        msg = f"SDK '{sdk}' not found ({e}). List installed SDKs with: xcodebuild -showsdks"
        raise MissingPrerequisiteError(msg) from e
    log.debug("SDK %s at %s", sdk, path)


def check_lipo_installed(tools: ToolSet) -> None:
    if not tools.merger.is_available():
        msg = "lipo command not found (required for creating fat binaries)"
        raise MissingPrerequisiteError(msg)


def check_go_sources(env: BuildEnvironment) -> None:
    if not env.go_source_dir.is_dir():
        msg = f"{env.go_source_name} directory not found: {env.go_source_dir}"
        raise MissingPrerequisiteError(msg)
    if not (env.go_source_dir / "go.mod").is_file():
        msg = f"go.mod not found in {env.go_source_dir}"
        raise MissingPrerequisiteError(msg)


def check_build_prerequisites(env: BuildEnvironment, tools: ToolSet) -> None:
    """Phase 1: Go, Xcode, every SDK in the matrix, lipo, wrapped library sources."""
    log_section("Checking Prerequisites")
    check_go_installed(env, tools)
    check_xcode_installed(env, tools)
    for sdk in env.sdks():
        check_sdk(sdk, tools)
    check_lipo_installed(tools)
    check_go_sources(env)
    log.info("✓ All prerequisites satisfied")


def check_bundle_prerequisites(env: BuildEnvironment) -> None:
    """Phase 2: phase 1 archives and the public header must exist."""
    log_section("Checking Prerequisites")
    for pc in (PlatformClass.DEVICE, PlatformClass.SIMULATOR):
        lib = env.binary_source(pc)
        try:
            check_file_exists(lib, f"{pc.value.capitalize()} library")
        except ValidationError as e:
            msg = f"{e}. Please run `wireguardkit build-go` first"
            raise ValidationError(msg) from e
    if not env.public_header_path.is_file():
        msg = f"WireGuard header not found: {env.public_header_path}"
        raise MissingPrerequisiteError(msg)
    log.info("✓ All prerequisites satisfied")


def check_verify_prerequisites(env: BuildEnvironment) -> None:
    """Phase 3: the bundle directory must exist."""
    if not env.bundle_path.is_dir():
        msg = (
            f"{env.framework_name}.{env.bundle_extension} not found: {env.bundle_path}. "
            "Please run `wireguardkit build-xcframework` first"
        )
        raise MissingPrerequisiteError(msg)
