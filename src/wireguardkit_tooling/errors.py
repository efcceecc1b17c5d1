"""Error taxonomy for the build pipeline.

Every stage raises a PipelineError subclass; only the phase runner turns one into an
exit code. Warnings (already-prepared toolchain, patch already applied) are logged and
never raised.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base for fatal pipeline errors. ``category`` names the failing class of check."""

    category = "PipelineFailure"


class MissingPrerequisiteError(PipelineError):
    """Toolchain, SDK, source tree or previous-phase output is absent or too old."""

    category = "MissingPrerequisite"


class PreparationError(MissingPrerequisiteError):
    """The isolated toolchain root could not be created."""

    category = "MissingPrerequisite"


class BuildError(PipelineError):
    """Compiler subprocess exited non-zero."""

    category = "BuildFailure"


class ValidationError(PipelineError):
    """Artifact missing, empty, wrong architecture set, or missing exported symbols."""

    category = "ValidationFailure"


class MergeError(PipelineError):
    category = "MergeFailure"


class AssemblyError(PipelineError):
    category = "AssemblyFailure"


class VerificationError(PipelineError):
    category = "VerificationFailure"
