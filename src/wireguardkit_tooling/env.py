"""Build environment: directory layout, version floors, target matrix, bundle naming.

One BuildEnvironment is constructed per invocation (``load_environment``) and passed
to every stage. Optional YAML overrides (wireguardkit.yaml) format:
- build_dir, artifacts_dir, sources_dir: paths relative to the project root
- min_ios_version, min_go_version, min_xcode_version
- framework_name, bundle_id
- consumer: { source_files, public_header_files, preserve_paths } glob lists
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

from wireguardkit_tooling.errors import MissingPrerequisiteError

CONFIG_FILENAME = "wireguardkit.yaml"
CONFIG_ENV_VAR = "WIREGUARDKIT_CONFIG"


class PlatformClass(str, Enum):
    DEVICE = "device"
    SIMULATOR = "simulator"


@dataclass(frozen=True)
class BuildTarget:
    """One cross-compilation target: SDK plus CPU architecture.

    ``go_arch``/``go_os`` are the toolchain's names for the same architecture/OS.
    """

    name: str
    platform_class: PlatformClass
    sdk: str
    arch: str
    go_arch: str
    go_os: str


@dataclass(frozen=True)
class VariantLayout:
    """Where a platform class lives in the intermediate and final bundles."""

    platform_class: PlatformClass
    framework_basename: str
    library_identifier: str
    archs: frozenset[str]
    label: str

    @property
    def short_label(self) -> str:
        return self.platform_class.value.capitalize()


DEFAULT_TARGETS: tuple[BuildTarget, ...] = (
    BuildTarget("ios-device-arm64", PlatformClass.DEVICE, "iphoneos", "arm64", "arm64", "ios"),
    BuildTarget(
        "ios-simulator-x86_64", PlatformClass.SIMULATOR, "iphonesimulator", "x86_64", "amd64", "ios"
    ),
    BuildTarget(
        "ios-simulator-arm64", PlatformClass.SIMULATOR, "iphonesimulator", "arm64", "arm64", "ios"
    ),
)

DEFAULT_CONSUMER: dict[str, tuple[str, ...]] = {
    "source_files": (
        "Sources/WireGuardKit/*.swift",
        "Sources/Shared/**/*.swift",
    ),
    "public_header_files": ("Sources/WireGuardKitC/*.h",),
    "preserve_paths": (
        "Scripts/**",
        "Sources/WireGuardKitGo/**",
        ".build/libraries/**",
    ),
}

# Keys accepted from YAML; everything else is ignored.
_SCALAR_KEYS = (
    "build_dir",
    "artifacts_dir",
    "sources_dir",
    "min_ios_version",
    "min_go_version",
    "min_xcode_version",
    "framework_name",
    "bundle_id",
)
_VERSION_KEYS = ("min_ios_version", "min_go_version", "min_xcode_version")


@dataclass(frozen=True)
class BuildEnvironment:
    project_root: Path
    build_dir: str = ".build"
    artifacts_dir: str = "Artifacts"
    sources_dir: str = "Sources"
    min_ios_version: str = "12.0"
    min_go_version: str = "1.20"
    min_xcode_version: str = "14.0"
    targets: tuple[BuildTarget, ...] = DEFAULT_TARGETS
    simulator_fat_target: str = "ios-simulator"
    archive_name: str = "libwg-go.a"
    framework_name: str = "WireGuardKit"
    bundle_extension: str = "xcframework"
    bundle_id: str = "com.wireguard.WireGuardKit"
    short_version: str = "1.0.0"
    bundle_version: str = "1"
    go_source_name: str = "WireGuardKitGo"
    public_header: str = "wireguard.h"
    patch_glob: str = "goruntime-*.diff"
    cflags: str = "-fembed-bitcode -Wno-unused-command-line-argument"
    go_ldflags: str = "-w -s"
    go_tags: str = "ios"
    go_build_mode: str = "c-archive"
    cc: str = "clang"
    symbol_marker: str = "cgoexp"
    required_symbols: tuple[str, ...] = ("wgTurnOn",)
    report_symbols: tuple[str, ...] = ("wgTurnOn", "wgTurnOff", "wgSetConfig", "wgGetConfig")
    consumer: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_CONSUMER), hash=False
    )

    # --- Paths ---

    @property
    def build_root(self) -> Path:
        return self.project_root / self.build_dir

    @property
    def artifacts_root(self) -> Path:
        return self.project_root / self.artifacts_dir

    @property
    def sources_root(self) -> Path:
        return self.project_root / self.sources_dir

    @property
    def toolchain_root(self) -> Path:
        return self.build_root / "goroot"

    @property
    def libraries_dir(self) -> Path:
        return self.build_root / "libraries"

    @property
    def frameworks_dir(self) -> Path:
        return self.build_root / "frameworks"

    @property
    def go_source_dir(self) -> Path:
        return self.sources_root / self.go_source_name

    @property
    def public_header_path(self) -> Path:
        return self.go_source_dir / self.public_header

    @property
    def bundle_path(self) -> Path:
        return self.artifacts_root / f"{self.framework_name}.{self.bundle_extension}"

    def archive_path(self, target_name: str) -> Path:
        """<build>/libraries/<target>/libwg-go.a (also used for the simulator fat target)."""
        return self.libraries_dir / target_name / self.archive_name

    # --- Targets ---

    def target(self, name: str) -> BuildTarget:
        """Return the matrix entry named ``name``. Raises KeyError for unknown names."""
        for t in self.targets:
            if t.name == name:
                return t
        msg = f"Unknown build target: {name}"
        raise KeyError(msg)

    def targets_for(self, platform_class: PlatformClass) -> list[BuildTarget]:
        return [t for t in self.targets if t.platform_class is platform_class]

    def sdks(self) -> list[str]:
        """Distinct SDK identifiers in matrix order."""
        out: list[str] = []
        for t in self.targets:
            if t.sdk not in out:
                out.append(t.sdk)
        return out

    def min_version_flag(self, target: BuildTarget) -> str:
        if target.platform_class is PlatformClass.DEVICE:
            return f"-miphoneos-version-min={self.min_ios_version}"
        return f"-mios-simulator-version-min={self.min_ios_version}"

    # --- Variants ---

    def variant(self, platform_class: PlatformClass) -> VariantLayout:
        if platform_class is PlatformClass.DEVICE:
            return VariantLayout(
                platform_class,
                f"{self.framework_name}-device",
                "ios-arm64",
                frozenset({"arm64"}),
                "iOS Device",
            )
        return VariantLayout(
            platform_class,
            f"{self.framework_name}-simulator",
            "ios-arm64_x86_64-simulator",
            frozenset({"x86_64", "arm64"}),
            "iOS Simulator",
        )

    def variants(self) -> list[VariantLayout]:
        return [self.variant(PlatformClass.DEVICE), self.variant(PlatformClass.SIMULATOR)]

    def binary_source(self, platform_class: PlatformClass) -> Path:
        """Phase 1 archive consumed by the variant: device target, or the simulator fat archive."""
        if platform_class is PlatformClass.DEVICE:
            return self.archive_path(self.targets_for(PlatformClass.DEVICE)[0].name)
        return self.archive_path(self.simulator_fat_target)

    def intermediate_framework(self, platform_class: PlatformClass) -> Path:
        return self.frameworks_dir / f"{self.variant(platform_class).framework_basename}.framework"

    def bundled_framework(self, platform_class: PlatformClass) -> Path:
        v = self.variant(platform_class)
        return self.bundle_path / v.library_identifier / f"{v.framework_basename}.framework"


def _load_yaml_mapping(path: Path) -> dict[str, Any]:
    import yaml

    with path.open() as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            msg = f"Could not parse config {path}: {e}"
            raise MissingPrerequisiteError(msg) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Config {path} must be a mapping, got {type(data).__name__}"
        raise MissingPrerequisiteError(msg)
    return data


def _resolve_config_path(project_root: Path, config_path: Path | None) -> Path | None:
    if config_path is not None:
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise MissingPrerequisiteError(msg)
        return config_path
    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        p = Path(from_env)
        if not p.is_absolute():
            p = project_root / p
        if not p.is_file():
            msg = f"{CONFIG_ENV_VAR} points to a missing file: {p}"
            raise MissingPrerequisiteError(msg)
        return p
    default = project_root / CONFIG_FILENAME
    return default if default.is_file() else None


def apply_overrides(env: BuildEnvironment, data: dict[str, Any]) -> BuildEnvironment:
    """Return a copy of env with recognised YAML keys applied.

    Raises MissingPrerequisiteError for an unquoted decimal version (YAML reads
    ``1.20`` as the float 1.2).
    """
    for k in _VERSION_KEYS:
        if isinstance(data.get(k), float):
            msg = f"{k}: {data[k]!r} was read as a number; quote version values (e.g. '1.20')"
            raise MissingPrerequisiteError(msg)
    changes: dict[str, Any] = {k: str(data[k]) for k in _SCALAR_KEYS if data.get(k) is not None}
    consumer = data.get("consumer")
    if isinstance(consumer, dict):
        merged = dict(env.consumer)
        for key in DEFAULT_CONSUMER:
            patterns = consumer.get(key)
            if isinstance(patterns, list):
                merged[key] = tuple(str(p) for p in patterns)
        changes["consumer"] = merged
    return replace(env, **changes) if changes else env


def load_environment(
    project_root: Path | None = None,
    config_path: Path | None = None,
) -> BuildEnvironment:
    """Build the environment for project_root (default: cwd), applying YAML overrides if present."""
    root = (Path(project_root) if project_root is not None else Path.cwd()).resolve()
    env = BuildEnvironment(project_root=root)
    path = _resolve_config_path(root, config_path)
    if path is None:
        return env
    return apply_overrides(env, _load_yaml_mapping(path))
