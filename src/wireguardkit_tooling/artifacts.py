"""Artifact records and the binary checks shared by every stage (architecture and symbols)."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from wireguardkit_tooling.env import BuildEnvironment
from wireguardkit_tooling.errors import ValidationError
from wireguardkit_tooling.helpers import check_file_exists
from wireguardkit_tooling.tools import ToolError, ToolSet


@dataclass(frozen=True)
class Artifact:
    """A validated static archive. ``archs`` has one entry, or several for a fat archive."""

    path: Path
    target_name: str
    archs: frozenset[str]
    size_bytes: int

    @property
    def is_fat(self) -> bool:
        return len(self.archs) > 1


def read_architectures(path: Path, tools: ToolSet) -> frozenset[str]:
    try:
        return frozenset(tools.arch_inspector.architectures(path))
    except ToolError as e:
        msg = f"Could not read architectures of {path}: {e}"
        raise ValidationError(msg) from e


def check_architectures(path: Path, expected: Iterable[str], tools: ToolSet) -> frozenset[str]:
    """Raise ValidationError unless path's architecture set equals expected exactly."""
    want = frozenset(expected)
    found = read_architectures(path, tools)
    if found != want:
        missing = sorted(want - found)
        extra = sorted(found - want)
        msg = (
            f"Binary {path} has architectures {sorted(found)}, expected {sorted(want)}"
            f" (missing: {missing or 'none'}, unexpected: {extra or 'none'})"
        )
        raise ValidationError(msg)
    return found


def matching_symbols(symbols: Iterable[str], marker: str, name: str) -> list[str]:
    """Symbols containing both marker and name (CGO exports: ``_cgoexp_<hash>_wgTurnOn``)."""
    return [s for s in symbols if marker in s and name in s]


def check_symbols(path: Path, env: BuildEnvironment, tools: ToolSet) -> None:
    """Raise ValidationError unless every required entry point is exported.

    Substring match against mangled names: a heuristic that a toolchain change to the
    mangling scheme can break.
    """
    try:
        symbols = tools.symbol_inspector.symbols(path)
    except ToolError as e:
        msg = f"Could not read symbols of {path}: {e}"
        raise ValidationError(msg) from e
    missing = [
        name
        for name in env.required_symbols
        if not matching_symbols(symbols, env.symbol_marker, name)
    ]
    if missing:
        hints = [s for s in symbols if "wg" in s][:5]
        msg = (
            f"WireGuard symbols not found in {path}: looking for {env.symbol_marker} symbols "
            f"with {', '.join(missing)} (symbols containing 'wg': {hints or 'none'})"
        )
        raise ValidationError(msg)


def validate_artifact(
    path: Path,
    target_name: str,
    expected_archs: Iterable[str],
    env: BuildEnvironment,
    tools: ToolSet,
    check_exports: bool = True,
) -> Artifact:
    """Existence, non-emptiness, exact architecture set, and (optionally) exported symbols."""
    size = check_file_exists(path, f"Library for {target_name}")
    archs = check_architectures(path, expected_archs, tools)
    if check_exports:
        check_symbols(path, env, tools)
    return Artifact(path=path, target_name=target_name, archs=archs, size_bytes=size)
