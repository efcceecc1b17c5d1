"""WireGuardKit build tooling: cross-compile WireGuard Go for iOS and package an xcframework."""

from wireguardkit_tooling.env import BuildEnvironment, BuildTarget, PlatformClass, load_environment
from wireguardkit_tooling.errors import (
    AssemblyError,
    BuildError,
    MergeError,
    MissingPrerequisiteError,
    PipelineError,
    PreparationError,
    ValidationError,
    VerificationError,
)

__all__ = [
    "AssemblyError",
    "BuildEnvironment",
    "BuildError",
    "BuildTarget",
    "MergeError",
    "MissingPrerequisiteError",
    "PipelineError",
    "PlatformClass",
    "PreparationError",
    "ValidationError",
    "VerificationError",
    "load_environment",
]
