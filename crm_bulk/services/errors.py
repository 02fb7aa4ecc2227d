from __future__ import annotations

"""Structural pipeline errors.

These abort a whole import / export and are raised straight to the caller,
which owns user-visible reporting. Row-level failures never use these; they are
collected into ImportOutcome.errors instead.
"""

__all__ = [
    "PipelineError",
    "EmptyInputError",
    "NoHeadersError",
    "InvalidFileTypeError",
    "UnreadableFileError",
    "AuthenticationRequiredError",
    "NoMappedColumnsError",
    "MissingRequiredColumnError",
    "NoDataError",
]


class PipelineError(Exception):
    """Base exception for structural import / export failures."""


class EmptyInputError(PipelineError):
    pass


class NoHeadersError(PipelineError):
    pass


class InvalidFileTypeError(PipelineError):
    pass


class UnreadableFileError(PipelineError):
    pass


class AuthenticationRequiredError(PipelineError):
    pass


class NoMappedColumnsError(PipelineError):
    pass


class MissingRequiredColumnError(PipelineError):
    pass


class NoDataError(PipelineError):
    """Export found nothing to export. Reported, not fatal to the caller."""
