"""Check the paths the package manager's prepare hook consumes once the pipeline returns."""

from __future__ import annotations

import logging
from pathlib import Path

from wireguardkit_tooling.env import BuildEnvironment
from wireguardkit_tooling.errors import ValidationError
from wireguardkit_tooling.helpers import log_section

log = logging.getLogger(__name__)


def _non_empty(p: Path) -> bool:
    if p.is_file():
        return p.stat().st_size > 0
    if p.is_dir():
        return any(p.iterdir())
    return False


def missing_patterns(root: Path, patterns: tuple[str, ...] | list[str]) -> list[str]:
    """Patterns under root that match nothing non-empty."""
    return [pat for pat in patterns if not any(_non_empty(p) for p in root.glob(pat))]


def check_consumer_paths(env: BuildEnvironment) -> None:
    """Bundle, binding sources, public headers and preserved paths must all be present.

    Raises ValidationError listing every missing entry.
    """
    log_section("Checking Package Outputs")
    missing: list[str] = []
    bundle = env.bundle_path
    if not _non_empty(bundle):
        if bundle.is_relative_to(env.project_root):
            bundle = bundle.relative_to(env.project_root)
        missing.append(str(bundle))
    for group in ("source_files", "public_header_files", "preserve_paths"):
        for pat in missing_patterns(env.project_root, env.consumer.get(group, ())):
            missing.append(f"{group}: {pat}")
    if missing:
        msg = "Package outputs missing or empty: " + "; ".join(missing)
        raise ValidationError(msg)
    log.info("✓ All package outputs present")
