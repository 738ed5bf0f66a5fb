"""Exception types raised by gobundle."""

import pathlib


class GobundleError(RuntimeError):
    """Base class for fatal bundling failures."""


class ResolutionError(GobundleError):
    """Raised when the dependency closure cannot be computed."""


class MaterializeError(GobundleError):
    """Raised when the workspace cannot be populated.

    :ivar workspace: Partially populated workspace (``None`` if it was never created).
    """

    def __init__(self, message: str, *, workspace: pathlib.Path | None = None) -> None:
        super().__init__(message)
        self.workspace: pathlib.Path | None = workspace


class DeployError(GobundleError):
    """Raised when the deploy command cannot be run or exits non-zero."""
