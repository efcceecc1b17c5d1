"""Narrow interfaces over the external command-line tools, plus their subprocess implementations.

Stages only talk to tools through these protocols, so tests can hand in a ToolSet of
deterministic fakes instead of lipo/nm/xcodebuild/xcrun/go.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

log = logging.getLogger(__name__)


class ToolError(RuntimeError):
    """An external tool is missing or exited non-zero."""

    def __init__(self, cmd: Sequence[str], returncode: int | None, output: str = "") -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        self.output = output
        if returncode is None:
            detail = f"{self.cmd[0]} not found in PATH"
        else:
            detail = f"`{' '.join(self.cmd)}` exited with {returncode}"
        if output.strip():
            detail += f": {output.strip()[:500]}"
        super().__init__(detail)


def run_tool(
    cmd: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    capture: bool = True,
    check: bool = True,
    input: str | None = None,
) -> subprocess.CompletedProcess:
    """Run cmd; raise ToolError if the executable is missing or (when check) it exits non-zero.

    input, when given, is written to the child's stdin.
    """
    log.debug("$ %s", " ".join(str(c) for c in cmd))
    try:
        r = subprocess.run(
            [str(c) for c in cmd],
            cwd=str(cwd) if cwd is not None else None,
            env=dict(env) if env is not None else None,
            capture_output=capture,
            text=True,
            input=input,
        )
    except FileNotFoundError as e:
        raise ToolError(cmd, None) from e
    if check and r.returncode != 0:
        raise ToolError(cmd, r.returncode, (r.stderr or "") + (r.stdout or "") if capture else "")
    return r


# --- Protocols ---


class ArchitectureInspector(Protocol):
    def architectures(self, path: Path) -> list[str]: ...


class ArchitectureMerger(Protocol):
    def is_available(self) -> bool: ...

    def merge(self, inputs: Sequence[Path], output: Path) -> None: ...


class SymbolInspector(Protocol):
    def symbols(self, path: Path) -> list[str]: ...


class BitcodeInspector(Protocol):
    def has_bitcode(self, path: Path) -> bool: ...


class BundleAssembler(Protocol):
    def version(self) -> str | None: ...

    def create(self, frameworks: Sequence[Path], output: Path) -> None: ...


class SdkLocator(Protocol):
    def sdk_path(self, sdk: str) -> Path: ...


class Compiler(Protocol):
    def version(self) -> str | None: ...

    def goroot(self) -> Path | None: ...

    def build_archive(
        self,
        output: Path,
        *,
        cwd: Path,
        env: Mapping[str, str],
        ldflags: str,
        tags: str,
        build_mode: str,
    ) -> None: ...


# --- lipo ---


def parse_lipo_info(text: str) -> list[str]:
    """Architectures from ``lipo -info`` output (thin or fat form).

    Warning lines around the architecture line are skipped.
    """
    for line in text.splitlines():
        if "Non-fat file" in line:
            return line.rsplit(":", 1)[-1].split()
        if " are: " in line:
            return line.split(" are: ", 1)[1].split()
    return []


class Lipo:
    def __init__(self, executable: str = "lipo") -> None:
        self.executable = executable

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def architectures(self, path: Path) -> list[str]:
        r = run_tool([self.executable, "-info", str(path)])
        return parse_lipo_info((r.stdout or "") + "\n" + (r.stderr or ""))

    def merge(self, inputs: Sequence[Path], output: Path) -> None:
        run_tool([self.executable, "-create", "-output", str(output), *(str(p) for p in inputs)])


# --- nm / otool ---


def parse_nm_output(text: str) -> list[str]:
    """Symbol names (last column) from ``nm`` output; archive member headers are skipped."""
    out: list[str] = []
    for line in text.splitlines():
        parts = line.split()
        if not parts or line.endswith(":"):
            continue
        out.append(parts[-1])
    return out


class Nm:
    def __init__(self, executable: str = "nm") -> None:
        self.executable = executable

    def symbols(self, path: Path) -> list[str]:
        # nm exits non-zero for archive members without a symbol table; keep what it printed.
        r = run_tool([self.executable, str(path)], check=False)
        return parse_nm_output(r.stdout or "")


class Otool:
    def __init__(self, executable: str = "otool") -> None:
        self.executable = executable

    def has_bitcode(self, path: Path) -> bool:
        try:
            r = run_tool([self.executable, "-l", str(path)])
        except ToolError as e:
            log.debug("otool unavailable for bitcode check: %s", e)
            return False
        return "__LLVM" in (r.stdout or "")


# --- xcodebuild / xcrun ---


class Xcodebuild:
    def __init__(self, executable: str = "xcodebuild") -> None:
        self.executable = executable

    def version(self) -> str | None:
        """'Xcode 15.0.1' -> '15.0.1'; None when xcodebuild is unavailable."""
        if shutil.which(self.executable) is None:
            return None
        try:
            r = run_tool([self.executable, "-version"])
        except ToolError:
            return None
        first = (r.stdout or "").strip().splitlines()
        if not first:
            return None
        parts = first[0].split()
        return parts[1] if len(parts) > 1 else None

    def create(self, frameworks: Sequence[Path], output: Path) -> None:
        cmd = [self.executable, "-create-xcframework"]
        for fw in frameworks:
            cmd += ["-framework", str(fw)]
        cmd += ["-output", str(output)]
        run_tool(cmd, capture=False)


class Xcrun:
    def __init__(self, executable: str = "xcrun") -> None:
        self.executable = executable

    def sdk_path(self, sdk: str) -> Path:
        cmd = [self.executable, "--sdk", sdk, "--show-sdk-path"]
        r = run_tool(cmd)
        path = (r.stdout or "").strip()
        if not path:
            raise ToolError(cmd, r.returncode, "empty SDK path")
        return Path(path)


# --- go ---


class GoCompiler:
    def __init__(self, executable: str = "go") -> None:
        self.executable = executable

    def version(self) -> str | None:
        """'go version go1.21.5 darwin/arm64' -> '1.21.5'; None when go is unavailable."""
        if shutil.which(self.executable) is None:
            return None
        try:
            r = run_tool([self.executable, "version"])
        except ToolError:
            return None
        parts = (r.stdout or "").split()
        if len(parts) < 3:
            return None
        return parts[2].removeprefix("go")

    def goroot(self) -> Path | None:
        try:
            r = run_tool([self.executable, "env", "GOROOT"])
        except ToolError as e:
            log.debug("go env GOROOT failed: %s", e)
            return None
        value = (r.stdout or "").strip()
        return Path(value) if value else None

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
        run_tool(
            [
                self.executable,
                "build",
                f"-ldflags={ldflags}",
                "-trimpath",
                "-v",
                f"-tags={tags}",
                f"-buildmode={build_mode}",
                "-o",
                str(output),
            ],
            cwd=cwd,
            env=env,
            capture=False,
        )


@dataclass
class ToolSet:
    """Every external tool the pipeline touches."""

    compiler: Compiler
    sdk_locator: SdkLocator
    arch_inspector: ArchitectureInspector
    merger: ArchitectureMerger
    symbol_inspector: SymbolInspector
    bitcode_inspector: BitcodeInspector
    bundler: BundleAssembler


def default_toolset() -> ToolSet:
    lipo = Lipo()
    return ToolSet(
        compiler=GoCompiler(),
        sdk_locator=Xcrun(),
        arch_inspector=lipo,
        merger=lipo,
        symbol_inspector=Nm(),
        bitcode_inspector=Otool(),
        bundler=Xcodebuild(),
    )
