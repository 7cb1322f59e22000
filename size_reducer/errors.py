"""
errors.py - Exceptions raised by the reducers.

A target that cannot be met is not an error; see SearchOutcome.target_met.
"""


class ReducerError(Exception):
    """Base class for size_reducer failures."""


class ConfigurationError(ReducerError, ValueError):
    """Invalid budget, candidate list or input. Raised before any work."""


class CollaboratorFailure(ReducerError):
    """Rasterizer, encoder or document assembly failed; the run is aborted."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"{stage} failed: {message}")
        self.stage = stage
