from __future__ import annotations


class PrebuildError(RuntimeError):
    """Base class for errors raised by the pre-build pipelines."""


class PreconditionError(PrebuildError):
    """Raised when a required directory or asset is missing and the run cannot start."""


class FontFetchError(PreconditionError):
    """Raised when the OGP font cannot be fetched in an embeddable format."""
