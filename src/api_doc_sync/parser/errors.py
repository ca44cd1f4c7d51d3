"""Diagnostics collected while parsing an application."""

from dataclasses import dataclass
from pathlib import Path


class ParseBailout(Exception):
    """Raised by a parser to abandon the package it is working on."""


@dataclass
class Diagnostic:
    message: str
    file: Path | None = None
    line: int | None = None


class ErrorList:
    """Accumulates diagnostics for a whole run.

    ``add`` is used by parsers and bails out once ``max_errors`` diagnostics
    have been collected; ``record`` never raises.
    """

    def __init__(self, max_errors: int = 0):
        self.max_errors = max_errors
        self.diagnostics: list[Diagnostic] = []

    def __len__(self) -> int:
        return len(self.diagnostics)

    def __iter__(self):
        return iter(self.diagnostics)

    def add(self, message: str, file: Path | None = None, line: int | None = None) -> None:
        """Record a diagnostic, raising ParseBailout when the limit is hit."""
        self.record(message, file, line)
        if self.max_errors and len(self.diagnostics) >= self.max_errors:
            raise ParseBailout(f"too many errors ({len(self.diagnostics)})")

    def record(self, message: str, file: Path | None = None, line: int | None = None) -> None:
        self.diagnostics.append(Diagnostic(message=message, file=file, line=line))
