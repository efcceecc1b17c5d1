"""Pytest fixtures for WireGuardKit tooling tests.

The external tools are replaced by fakes working on text "archives":

    ARCH arm64
    SYM _cgoexp_1a2b3c_wgTurnOn

so the whole pipeline runs on any OS without Go or Xcode.
"""

import logging
import plistlib
import shutil
from collections.abc import Callable, Iterable, Mapping, Sequence
from pathlib import Path

import pytest

from wireguardkit_tooling.tools import ToolError, ToolSet

GO_ARCH_TO_ARCH = {"arm64": "arm64", "amd64": "x86_64"}
DEFAULT_SYMBOLS = (
    "_cgoexp_1a2b3c_wgTurnOn",
    "_cgoexp_4d5e6f_wgTurnOff",
    "_cgoexp_7a8b9c_wgSetConfig",
    "_cgoexp_0d1e2f_wgGetConfig",
    "_malloc",
)


def write_archive(
    path: Path,
    archs: Iterable[str],
    symbols: Iterable[str] = DEFAULT_SYMBOLS,
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [f"ARCH {a}" for a in archs] + [f"SYM {s}" for s in symbols]
    path.write_text("\n".join(lines) + "\n")
    return path


def _read_fields(path: Path, kind: str, tool: str) -> list[str]:
    if not path.is_file():
        raise ToolError([tool, str(path)], 1, f"can't open input file: {path}")
    out: list[str] = []
    for line in path.read_text().splitlines():
        if line.startswith(kind + " "):
            value = line.split(" ", 1)[1]
            if value not in out:
                out.append(value)
    return out


class FakeCompiler:
    def __init__(self, goroot: Path | None, version: str | None = "1.21.5") -> None:
        self._goroot = goroot
        self._version = version
        self.symbols: tuple[str, ...] = DEFAULT_SYMBOLS
        self.fail_targets: set[str] = set()
        self.arch_overrides: dict[str, str] = {}
        self.calls: list[dict] = []

    def version(self) -> str | None:
        return self._version

    def goroot(self) -> Path | None:
        return self._goroot

    def build_archive(
        self,
        output: Path,
        *,
        cwd: Path,
        env: Mapping[str, str],
        ldflags: str,
        tags: str,
        build_mode: str,
    ) -> None:
        target_name = output.parent.name
        self.calls.append(
            {
                "target": target_name,
                "cwd": cwd,
                "env": env,
                "ldflags": ldflags,
                "tags": tags,
                "build_mode": build_mode,
            }
        )
        if target_name in self.fail_targets:
            raise ToolError(["go", "build"], 2, "cgo: C compiler \"clang\" not found")
        arch = self.arch_overrides.get(target_name, GO_ARCH_TO_ARCH[env["GOARCH"]])
        write_archive(output, [arch], self.symbols)
        output.with_suffix(".h").write_text("/* generated by cgo */\n")


class FakeLipo:
    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.drop_archs: set[str] = set()
        self.merges: list[list[Path]] = []

    def is_available(self) -> bool:
        return self.available

    def architectures(self, path: Path) -> list[str]:
        return _read_fields(path, "ARCH", "lipo")

    def merge(self, inputs: Sequence[Path], output: Path) -> None:
        self.merges.append(list(inputs))
        archs: list[str] = []
        symbols: list[str] = []
        for p in inputs:
            archs += [a for a in _read_fields(p, "ARCH", "lipo") if a not in self.drop_archs]
            symbols += _read_fields(p, "SYM", "lipo")
        write_archive(output, archs, symbols)


class FakeNm:
    def symbols(self, path: Path) -> list[str]:
        return _read_fields(path, "SYM", "nm")


class FakeOtool:
    def __init__(self, bitcode: bool = False) -> None:
        self.bitcode = bitcode

    def has_bitcode(self, path: Path) -> bool:
        return self.bitcode


class FakeXcodebuild:
    """Lays the frameworks out the way -create-xcframework does for this project."""

    def __init__(self, version: str | None = "15.0") -> None:
        self._version = version
        self.fail = False

    def version(self) -> str | None:
        return self._version

    def create(self, frameworks: Sequence[Path], output: Path) -> None:
        output.mkdir(parents=True)
        libraries = []
        for fw in frameworks:
            if fw.name.endswith("-device.framework"):
                identifier = "ios-arm64"
            else:
                identifier = "ios-arm64_x86_64-simulator"
            shutil.copytree(fw, output / identifier / fw.name)
            libraries.append({"LibraryIdentifier": identifier, "LibraryPath": fw.name})
            if self.fail:
                raise ToolError(["xcodebuild", "-create-xcframework"], 70, "error: bad framework")
        (output / "Info.plist").write_bytes(
            plistlib.dumps({"AvailableLibraries": libraries, "CFBundlePackageType": "XFWK"})
        )


class FakeXcrun:
    def __init__(self, root: Path) -> None:
        self.root = root
        self.missing: set[str] = set()

    def sdk_path(self, sdk: str) -> Path:
        if sdk in self.missing:
            raise ToolError(["xcrun", "--sdk", sdk, "--show-sdk-path"], 1, "SDK cannot be located")
        return self.root / f"{sdk}.sdk"


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def clean_config_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("WIREGUARDKIT_CONFIG", raising=False)


@pytest.fixture
def system_goroot(tmp_path: Path) -> Path:
    """Stand-in for `go env GOROOT`, including a build cache that must not be copied."""
    root = tmp_path / "usr-local-go"
    (root / "src" / "runtime" / "cgo").mkdir(parents=True)
    (root / "src" / "runtime" / "cgo" / "gcc_darwin_arm64.c").write_text("// runtime\n")
    (root / "VERSION").write_text("go1.21.5\n")
    cache = root / "pkg" / "obj" / "go-build" / "0a"
    cache.mkdir(parents=True)
    (cache / "0a1b-d").write_text("cache entry\n")
    return root


@pytest.fixture
def project(tmp_path: Path, clean_config_env) -> Path:
    """Project tree with the wrapped Go library, its header and the package sources."""
    root = tmp_path / "wireguard-apple"
    go_src = root / "Sources" / "WireGuardKitGo"
    go_src.mkdir(parents=True)
    (go_src / "go.mod").write_text("module golang.zx2c4.com/wireguard/apple\n\ngo 1.20\n")
    (go_src / "api-apple.go").write_text("package main\n")
    (go_src / "wireguard.h").write_text(
        "#ifndef WIREGUARD_H\n#define WIREGUARD_H\nextern int wgTurnOn(const char *settings, "
        "int32_t tun_fd);\n#endif\n"
    )
    swift = root / "Sources" / "WireGuardKit"
    swift.mkdir(parents=True)
    (swift / "WireGuardAdapter.swift").write_text("import Foundation\n")
    shared = root / "Sources" / "Shared" / "Logging"
    shared.mkdir(parents=True)
    (shared / "Logger.swift").write_text("import os.log\n")
    c_headers = root / "Sources" / "WireGuardKitC"
    c_headers.mkdir(parents=True)
    (c_headers / "WireGuardKitC.h").write_text("#include \"key.h\"\n")
    scripts = root / "Scripts"
    scripts.mkdir()
    (scripts / "build_wireguard_go_bridge.sh").write_text("#!/bin/sh\n")
    return root


@pytest.fixture
def env(project: Path):
    from wireguardkit_tooling.env import load_environment

    return load_environment(project)


@pytest.fixture
def fake_tools(tmp_path: Path, system_goroot: Path) -> ToolSet:
    lipo = FakeLipo()
    return ToolSet(
        compiler=FakeCompiler(system_goroot),
        sdk_locator=FakeXcrun(tmp_path / "SDKs"),
        arch_inspector=lipo,
        merger=lipo,
        symbol_inspector=FakeNm(),
        bitcode_inspector=FakeOtool(),
        bundler=FakeXcodebuild(),
    )


@pytest.fixture
def make_archive() -> Callable[..., Path]:
    return write_archive


@pytest.fixture
def phase1_outputs(env, make_archive) -> dict:
    """Device archive and simulator fat archive as phase 1 leaves them."""
    from wireguardkit_tooling.env import PlatformClass

    return {
        PlatformClass.DEVICE: make_archive(env.binary_source(PlatformClass.DEVICE), ["arm64"]),
        PlatformClass.SIMULATOR: make_archive(
            env.binary_source(PlatformClass.SIMULATOR), ["x86_64", "arm64"]
        ),
    }
