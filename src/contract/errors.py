"""Exception types raised by the optimizer stages."""

from __future__ import annotations


class OptimizerError(Exception):
    """Base class for optimizer failures."""


class ParseError(OptimizerError):
    """A construction call site does not match a recognized invocation shape.

    Site-local: the extractor records it on the site and keeps scanning.
    """


class OracleUnavailableError(OptimizerError):
    """The verification process could not be started at all."""


class ScratchResourceError(OptimizerError):
    """The scratch candidate could not be allocated, written or cleaned."""


class PatchConflictError(OptimizerError):
    """Two rewrite patches target overlapping ranges of the same buffer."""


__all__ = [
    "OptimizerError",
    "OracleUnavailableError",
    "ParseError",
    "PatchConflictError",
    "ScratchResourceError",
]
