"""Exceptions raised while converting a CPU profile into flame-graph data."""

from __future__ import annotations


class Gperf2FlamegraphError(Exception):
    """Base class for every fatal conversion failure."""


class FormatError(Gperf2FlamegraphError):
    """Raised when a profile's header, record stream or trailer is malformed."""


class TruncatedProfileError(FormatError, EOFError):
    """Raised when the profile ends before a declared field could be read."""


class SymbolExtractionError(Gperf2FlamegraphError):
    """Raised when no symbol could be obtained for a mapped object."""


class ToolchainError(Gperf2FlamegraphError, RuntimeError):
    pass


class ToolNotFoundError(ToolchainError):
    pass


class ToolFailedError(ToolchainError):
    pass


class RendererError(Gperf2FlamegraphError):
    """Raised when the external flame-graph renderer fails."""
