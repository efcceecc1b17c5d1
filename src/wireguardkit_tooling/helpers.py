"""Shared helpers for wireguardkit_tooling (logging, versions, file checks, sizes).

Used by prereqs, toolchain, compile, merge, bundle, verify and the CLI.
"""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path

from wireguardkit_tooling.errors import ValidationError

# --- Logging ---

_LOG_FORMAT = "[%(levelname)s] {phase}: %(message)s"


def configure_logging(phase: str, verbose: bool = False) -> None:
    """Route log records to stderr as ``[LEVEL] phase: message``. Replaces earlier handlers."""
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT.format(phase=phase)))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


def log_section(title: str) -> None:
    """Print a section banner between steps of a phase."""
    bar = "=" * 40
    print()
    print(bar)
    print(title)
    print(bar)


# --- Version ---


def parse_version(v: str) -> tuple[int, ...]:
    """Numeric components of a toolchain version ('go1.21.5' -> (1, 21, 5), '15.0' -> (15, 0)).

    Raises ValueError when no leading numeric component is present.
    """
    m = re.search(r"(\d+(?:\.\d+)*)", v)
    if not m:
        msg = "Invalid version format: " + str(v)
        raise ValueError(msg)
    return tuple(int(part) for part in m.group(1).split("."))


def version_at_least(found: str, minimum: str) -> bool:
    """Compare major.minor of found against minimum; patch level is ignored."""
    f = (parse_version(found) + (0, 0))[:2]
    m = (parse_version(minimum) + (0, 0))[:2]
    return f >= m


# --- Files ---


def check_file_exists(path: Path, what: str = "File") -> int:
    """Raise ValidationError unless path is a non-empty regular file. Returns its size."""
    if not path.is_file():
        msg = f"{what} not found: {path}"
        raise ValidationError(msg)
    size = path.stat().st_size
    if size == 0:
        msg = f"{what} is empty: {path}"
        raise ValidationError(msg)
    return size


def ensure_dir(path: Path) -> Path:
    if not path.is_dir():
        path.mkdir(parents=True, exist_ok=True)
        logging.getLogger(__name__).info("Created directory: %s", path)
    return path


def directory_size(path: Path) -> int:
    """Total bytes of regular files under path (0 if missing)."""
    if path.is_file():
        return path.stat().st_size
    if not path.is_dir():
        return 0
    return sum(p.stat().st_size for p in path.rglob("*") if p.is_file() and not p.is_symlink())


def format_size(n: int | None) -> str:
    """Human-readable size in the style of ``du -h`` (e.g. 512B, 1.5K, 12M)."""
    if n is None:
        return "N/A"
    if n < 1024:
        return f"{n}B"
    size = n / 1024
    unit = "K"
    for bigger in ("M", "G"):
        if size < 1024:
            break
        size /= 1024
        unit = bigger
    return f"{size:.1f}{unit}" if size < 10 else f"{size:.0f}{unit}"
