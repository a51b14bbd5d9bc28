"""
Exception types raised by the generator's public entry points.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class GenerationError(Exception):
    """Base class for every unrecoverable generation failure."""


class UnknownTypeError(GenerationError):
    """
    A type descriptor resolved to a record the marshaller cannot represent.
    """

    def __init__(self, display_name: str, reason: Optional[str] = None) -> None:
        self.display_name = display_name
        self.reason = reason
        msg = f"Unknown type '{display_name}'"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class ArtifactError(GenerationError):
    """Reading, patching or writing an artifact failed."""

    def __init__(self, path: Union[str, Path], message: str) -> None:
        self.path = Path(path)
        super().__init__(f"{message}: {self.path}")


class IRFormatError(GenerationError):
    """The IR document is not shaped the way the loader expects."""


__all__ = [
    "GenerationError",
    "UnknownTypeError",
    "ArtifactError",
    "IRFormatError",
]
