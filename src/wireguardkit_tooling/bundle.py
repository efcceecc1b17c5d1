"""Assemble per-platform framework variants and package them into the xcframework.

Variant layout (<name> is the framework basename, e.g. WireGuardKit-device):
    <name>.framework/<name>                 static archive (name must match the bundle)
    <name>.framework/Headers/WireGuardKit.h umbrella header
    <name>.framework/Headers/wireguard.h    public C header, copied verbatim
    <name>.framework/Modules/module.modulemap
    <name>.framework/Info.plist
"""

from __future__ import annotations

import logging
import plistlib
import shutil
from dataclasses import dataclass
from pathlib import Path

from wireguardkit_tooling.artifacts import Artifact, check_architectures, validate_artifact
from wireguardkit_tooling.env import BuildEnvironment, PlatformClass
from wireguardkit_tooling.errors import AssemblyError, ValidationError
from wireguardkit_tooling.helpers import ensure_dir, log_section
from wireguardkit_tooling.tools import ToolError, ToolSet

log = logging.getLogger(__name__)

UMBRELLA_HEADER_TEMPLATE = """\
// SPDX-License-Identifier: MIT
// Copyright (C) 2024 {{framework_name}}. All Rights Reserved.

#import <Foundation/Foundation.h>

//! Project version number for {{framework_name}}
FOUNDATION_EXPORT double {{framework_name}}VersionNumber;

//! Project version string for {{framework_name}}
FOUNDATION_EXPORT const unsigned char {{framework_name}}VersionString[];

// WireGuard C API
#import <{{framework_name}}/{{public_header}}>
"""

MODULE_MAP_TEMPLATE = """\
framework module {{framework_name}} {
    umbrella header "{{framework_name}}.h"
    export *
    module * { export * }

    explicit module C {
        header "{{public_header}}"
        export *
    }
}
"""


def _render(template: str, env: BuildEnvironment) -> str:
    return template.replace("{{framework_name}}", env.framework_name).replace(
        "{{public_header}}", env.public_header
    )


def render_umbrella_header(env: BuildEnvironment) -> str:
    return _render(UMBRELLA_HEADER_TEMPLATE, env)


def render_module_map(env: BuildEnvironment) -> str:
    return _render(MODULE_MAP_TEMPLATE, env)


def render_info_plist(executable: str, env: BuildEnvironment) -> bytes:
    return plistlib.dumps(
        {
            "CFBundleDevelopmentRegion": "en",
            "CFBundleExecutable": executable,
            "CFBundleIdentifier": env.bundle_id,
            "CFBundleInfoDictionaryVersion": "6.0",
            "CFBundleName": env.framework_name,
            "CFBundlePackageType": "FMWK",
            "CFBundleShortVersionString": env.short_version,
            "CFBundleVersion": env.bundle_version,
            "MinimumOSVersion": env.min_ios_version,
        }
    )


@dataclass(frozen=True)
class BundleVariant:
    platform_class: PlatformClass
    path: Path
    binary: Path
    archs: frozenset[str]
    header_files: tuple[Path, ...]
    module_map: Path
    info_plist: Path

    def problems(self) -> list[str]:
        """Missing or empty parts; empty list means well-formed."""
        out: list[str] = []
        for label, p in (
            ("binary", self.binary),
            ("module map", self.module_map),
            ("Info.plist", self.info_plist),
        ):
            if not p.is_file() or p.stat().st_size == 0:
                out.append(f"{label} {p}")
        if not self.header_files:
            out.append(f"headers in {self.path / 'Headers'}")
        for h in self.header_files:
            if not h.is_file() or h.stat().st_size == 0:
                out.append(f"header {h}")
        return out

    def is_well_formed(self) -> bool:
        return not self.problems()


@dataclass(frozen=True)
class DistributableBundle:
    path: Path
    info_plist: Path
    variants: tuple[BundleVariant, ...]


def variant_at(
    framework_path: Path,
    platform_class: PlatformClass,
    env: BuildEnvironment,
) -> BundleVariant:
    """Describe the variant rooted at framework_path (files may or may not exist)."""
    basename = framework_path.name.removesuffix(".framework")
    headers = framework_path / "Headers"
    return BundleVariant(
        platform_class=platform_class,
        path=framework_path,
        binary=framework_path / basename,
        archs=env.variant(platform_class).archs,
        header_files=(headers / f"{env.framework_name}.h", headers / env.public_header),
        module_map=framework_path / "Modules" / "module.modulemap",
        info_plist=framework_path / "Info.plist",
    )


def load_phase1_artifacts(env: BuildEnvironment, tools: ToolSet) -> dict[PlatformClass, Artifact]:
    """Re-validate the device archive and the simulator fat archive produced by phase 1."""
    out: dict[PlatformClass, Artifact] = {}
    for layout in env.variants():
        path = env.binary_source(layout.platform_class)
        out[layout.platform_class] = validate_artifact(
            path, path.parent.name, layout.archs, env, tools
        )
    return out


def assemble_variant(
    platform_class: PlatformClass,
    binary: Artifact,
    env: BuildEnvironment,
) -> BundleVariant:
    """Create a fresh <frameworks>/<name>.framework for platform_class around binary."""
    layout = env.variant(platform_class)
    if binary.archs != layout.archs:
        msg = (
            f"{layout.label} binary {binary.path} has architectures {sorted(binary.archs)}, "
            f"expected {sorted(layout.archs)}"
        )
        raise AssemblyError(msg)
    if not env.public_header_path.is_file():
        msg = f"WireGuard header not found: {env.public_header_path}"
        raise AssemblyError(msg)

    fw = env.intermediate_framework(platform_class)
    log.info("Creating framework for %s...", layout.label)
    if fw.exists():
        shutil.rmtree(fw)
    variant = variant_at(fw, platform_class, env)
    ensure_dir(fw / "Headers")
    ensure_dir(fw / "Modules")

    log.info("Copying binary...")
    shutil.copyfile(binary.path, variant.binary)
    log.info("Creating umbrella header...")
    variant.header_files[0].write_text(render_umbrella_header(env))
    log.info("Copying WireGuard header...")
    shutil.copyfile(env.public_header_path, variant.header_files[1])
    log.info("Creating module map...")
    variant.module_map.write_text(render_module_map(env))
    log.info("Creating Info.plist...")
    variant.info_plist.write_bytes(render_info_plist(layout.framework_basename, env))

    problems = variant.problems()
    if problems:
        msg = f"Framework {fw} is malformed: missing {', '.join(problems)}"
        raise AssemblyError(msg)
    log.info("✓ Framework created: %s", fw)
    return variant


def assemble_bundle(
    device: BundleVariant,
    simulator: BundleVariant,
    env: BuildEnvironment,
    tools: ToolSet,
) -> DistributableBundle:
    """Replace env.bundle_path with a bundle built from both variants by the bundler tool.

    On any failure the partial output is removed, so no half-built bundle passes the
    top-level Info.plist check.
    """
    log_section("Creating XCFramework")
    for v in (device, simulator):
        problems = v.problems()
        if problems:
            msg = (
                f"{v.platform_class.value} variant {v.path} is malformed: "
                f"missing {', '.join(problems)}"
            )
            raise AssemblyError(msg)

    output = env.bundle_path
    if output.exists():
        log.info("Removing existing XCFramework...")
        shutil.rmtree(output)
    ensure_dir(output.parent)

    log.info("Running xcodebuild to create XCFramework...")
    try:
        tools.bundler.create([device.path, simulator.path], output)
    except ToolError as e:
        shutil.rmtree(output, ignore_errors=True)
        msg = f"XCFramework creation failed: {e}"
        raise AssemblyError(msg) from e

    info_plist = output / "Info.plist"
    if not info_plist.is_file() or info_plist.stat().st_size == 0:
        shutil.rmtree(output, ignore_errors=True)
        msg = f"XCFramework creation failed: {info_plist} missing"
        raise AssemblyError(msg)

    variants = tuple(variant_at(env.bundled_framework(pc), pc, env) for pc in PlatformClass)
    log.info("✓ XCFramework created successfully")
    return DistributableBundle(path=output, info_plist=info_plist, variants=variants)


def validate_bundle(bundle: DistributableBundle, env: BuildEnvironment, tools: ToolSet) -> None:
    """Fail-fast structural check run right after packaging (phase 3 is the full audit)."""
    log_section("Validating XCFramework")
    if not bundle.path.is_dir():
        msg = f"XCFramework directory not found: {bundle.path}"
        raise ValidationError(msg)
    if not bundle.info_plist.is_file():
        msg = f"XCFramework Info.plist not found: {bundle.info_plist}"
        raise ValidationError(msg)
    for v in bundle.variants:
        layout = env.variant(v.platform_class)
        if not v.path.parent.is_dir():
            msg = f"{layout.label} variant not found in XCFramework: {v.path.parent}"
            raise ValidationError(msg)
        if not v.binary.is_file():
            msg = f"{layout.label} binary not found: {v.binary}"
            raise ValidationError(msg)
        check_architectures(v.binary, layout.archs, tools)
        log.info(
            "✓ %s binary has correct architectures (%s)",
            layout.label,
            ", ".join(sorted(layout.archs)),
        )
        missing = [str(h) for h in v.header_files if not h.is_file()]
        if missing:
            msg = f"Required headers missing: {', '.join(missing)}"
            raise ValidationError(msg)
        if not v.module_map.is_file():
            msg = f"Module map not found: {v.module_map}"
            raise ValidationError(msg)
    log.info("✓ XCFramework validation passed")
