"""Read-only audit of a finished xcframework.

Unlike the build phases this does not stop at the first failure: every check runs and
is tallied, so one run lists every defect. Nothing under the bundle is written.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from wireguardkit_tooling.artifacts import check_architectures, check_symbols
from wireguardkit_tooling.bundle import BundleVariant, variant_at
from wireguardkit_tooling.env import BuildEnvironment, PlatformClass
from wireguardkit_tooling.errors import PipelineError, VerificationError
from wireguardkit_tooling.helpers import (
    check_file_exists,
    directory_size,
    format_size,
    log_section,
)
from wireguardkit_tooling.tools import ToolError, ToolSet

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckResult:
    section: str
    description: str
    passed: bool
    detail: str = ""


@dataclass(frozen=True)
class BinaryAnalysis:
    label: str
    path: Path
    size_bytes: int | None
    archs: tuple[str, ...]
    key_symbols: tuple[str, ...]
    has_bitcode: bool


@dataclass
class VerificationReport:
    bundle_path: Path
    results: list[CheckResult] = field(default_factory=list)
    analyses: list[BinaryAnalysis] = field(default_factory=list)
    total_size: int = 0
    variant_sizes: dict[str, int] = field(default_factory=dict)

    @property
    def passed_count(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.passed)

    @property
    def ok(self) -> bool:
        return self.failed_count == 0

    def failures(self) -> list[CheckResult]:
        return [r for r in self.results if not r.passed]


def _require(condition: bool, detail: str) -> None:
    if not condition:
        raise VerificationError(detail)


def run_check(
    report: VerificationReport,
    section: str,
    description: str,
    check: Callable[[], None],
) -> bool:
    """Run one check, record it, print ✓/✗. Pipeline, tool and OS errors count as failures."""
    try:
        check()
    except (PipelineError, ToolError, OSError) as e:
        report.results.append(CheckResult(section, description, False, str(e)))
        print(f"  {description}... ✗")
        log.debug("%s / %s failed: %s", section, description, e)
        return False
    report.results.append(CheckResult(section, description, True))
    print(f"  {description}... ✓")
    return True


def _variant_checks(
    v: BundleVariant,
    env: BuildEnvironment,
    tools: ToolSet,
) -> list[tuple[str, Callable[[], None]]]:
    archs = sorted(v.archs)

    def binary() -> None:
        check_file_exists(v.binary, "Binary")
        check_architectures(v.binary, v.archs, tools)

    def headers() -> None:
        missing = [h.name for h in v.header_files if not h.is_file()]
        _require(not missing, f"missing headers: {', '.join(missing)}")

    return [
        (f"Binary exists and has {' + '.join(archs)}", binary),
        ("WireGuard symbols present", lambda: check_symbols(v.binary, env, tools)),
        ("Headers present", headers),
        ("Module map present", lambda: _require(v.module_map.is_file(), f"{v.module_map}")),
        ("Info.plist present", lambda: _require(v.info_plist.is_file(), f"{v.info_plist}")),
    ]


def analyze_binary(path: Path, label: str, env: BuildEnvironment, tools: ToolSet) -> BinaryAnalysis:
    """Size, architectures, first five key symbols, bitcode presence. Informational only."""
    if not path.is_file():
        return BinaryAnalysis(label, path, None, (), (), False)
    try:
        archs = tuple(tools.arch_inspector.architectures(path))
    except ToolError as e:
        log.debug("architecture lookup failed for %s: %s", path, e)
        archs = ()
    pattern = re.compile("|".join(re.escape(s) for s in env.report_symbols))
    try:
        symbols = tuple(s for s in tools.symbol_inspector.symbols(path) if pattern.search(s))[:5]
    except ToolError as e:
        log.debug("symbol lookup failed for %s: %s", path, e)
        symbols = ()
    return BinaryAnalysis(
        label=label,
        path=path,
        size_bytes=path.stat().st_size,
        archs=archs,
        key_symbols=symbols,
        has_bitcode=tools.bitcode_inspector.has_bitcode(path),
    )


def verify(env: BuildEnvironment, tools: ToolSet) -> VerificationReport:
    """Audit env.bundle_path. Never raises for a failed check; see report.ok."""
    bundle = env.bundle_path
    report = VerificationReport(bundle_path=bundle)
    variants = [variant_at(env.bundled_framework(pc), pc, env) for pc in PlatformClass]

    section = f"Validating {env.framework_name}.{env.bundle_extension} Structure"
    log_section(section)
    run_check(report, section, "XCFramework exists", lambda: _require(bundle.is_dir(), f"{bundle}"))
    run_check(
        report,
        section,
        "Info.plist present",
        lambda: _require((bundle / "Info.plist").is_file(), f"{bundle / 'Info.plist'}"),
    )
    for v in variants:
        layout = env.variant(v.platform_class)
        variant_dir = v.path.parent
        run_check(
            report,
            section,
            f"{layout.short_label} variant ({layout.library_identifier})",
            lambda d=variant_dir: _require(d.is_dir(), f"{d}"),
        )

    for v in variants:
        layout = env.variant(v.platform_class)
        section = f"Validating {layout.short_label} Binary ({layout.library_identifier})"
        log_section(section)
        for description, check in _variant_checks(v, env, tools):
            run_check(report, section, description, check)

    log_section("Detailed Binary Analysis")
    for v in variants:
        report.analyses.append(
            analyze_binary(v.binary, env.variant(v.platform_class).short_label, env, tools)
        )
    report.total_size = directory_size(bundle)
    report.variant_sizes = {
        env.variant(v.platform_class).library_identifier: directory_size(v.path.parent)
        for v in variants
    }
    return report


def print_report(report: VerificationReport) -> None:
    """Binary analysis, size report and pass/fail summary."""
    for a in report.analyses:
        print()
        if a.size_bytes is None:
            log.error("Binary not found: %s", a.path)
            continue
        log.info("Analyzing %s binary:", a.label)
        print(f"    Size: {format_size(a.size_bytes)}")
        print(f"    Architectures: {' '.join(a.archs) or '(unknown)'}")
        print("    Key WireGuard symbols:")
        if a.key_symbols:
            for s in a.key_symbols:
                print(f"      - {s}")
        else:
            print("      (no symbols found)")
        if a.has_bitcode:
            log.warning("    Bitcode section detected (deprecated in Xcode 14+)")

    log_section("Size Report")
    print()
    log.info("XCFramework total size:")
    print(f"  {format_size(report.total_size)}")
    print()
    log.info("Individual platform sizes:")
    for identifier, size in report.variant_sizes.items():
        print(f"  {identifier + ':':<30} {format_size(size)}")

    log_section("Verification Summary")
    print()
    log.info("Total checks: %d", len(report.results))
    print(f"  Passed: {report.passed_count}")
    if not report.ok:
        print(f"  Failed: {report.failed_count}")
        for r in report.failures():
            print(f"    ✗ [{r.section}] {r.description}: {r.detail}")
        print()
        log.error("Some validations failed")
        return
    print()
    log.info("✓ All validations passed! ✓")
    log.info("XCFramework is ready for distribution: %s", report.bundle_path)
