"""Error taxonomy and user-visible diagnostics for plot evaluation.

Purpose
-------
An evaluation pass must never abort because one expression is malformed.
Errors that belong to a single expression are raised as :class:`PlotError`
subclasses inside the dispatcher, caught at the expression boundary, and
recorded as :class:`Diagnostic` entries on the owning region.

Concepts and structure
----------------------
- ``EvaluationTypeError``: a non-scalar result appeared where a scalar was
  required (complex, matrix, system).
- ``PlotPolicyError``: the expression is well-formed but not plottable under
  the free-variable or matrix-shape rules.
- ``DiagnosticLog``: ordered, de-duplicated record of the messages shown to
  the user for the last pass.

Numeric edge cases (NaN/Inf from interpolation or empty ranges) are not
errors and never reach this module; they are filtered by the renderer.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class PlotDiagnosticWarning(UserWarning):
    """Warning category used for non-fatal, user-visible plot diagnostics."""


class PlotError(Exception):
    """Base class for errors confined to one plotted expression."""

    category = "error"

    def __init__(self, message: str, expression: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.expression = expression


class EvaluationTypeError(PlotError):
    """Raised when an evaluation yields a non-scalar where a scalar is required."""

    category = "type"


class PlotPolicyError(PlotError):
    """Raised when an expression violates the plotting rules."""

    category = "policy"


class TooManyUnknownsError(PlotPolicyError):
    """Raised for expressions with more than two free variables."""


class MatrixShapeError(PlotPolicyError):
    """Raised for matrix results whose column layout cannot be plotted."""


@dataclass(frozen=True)
class Diagnostic:
    """One user-visible message produced during an evaluation pass.

    Parameters
    ----------
    message : str
        Human-readable description.
    expression : str or None
        Printed form of the offending expression, or ``None`` when not
        attributable.
    category : str
        ``"type"``, ``"policy"`` or ``"error"``.
    """

    message: str
    expression: Optional[str] = None
    category: str = "error"

    def __str__(self) -> str:
        if self.expression is None:
            return self.message
        return f"{self.message} ({self.expression})"


class DiagnosticLog:
    """Ordered collection of diagnostics for the most recent pass."""

    def __init__(self, *, emit_warnings: bool = True) -> None:
        self._entries: list[Diagnostic] = []
        self.emit_warnings = bool(emit_warnings)

    def report(
        self,
        message: str,
        expression: Any = None,
        *,
        category: str = "error",
    ) -> Optional[Diagnostic]:
        """Record a diagnostic unless an identical one was already recorded.

        Returns the new :class:`Diagnostic`, or ``None`` for a duplicate.
        """
        printed = None if expression is None else str(expression)
        entry = Diagnostic(message=message, expression=printed, category=category)
        if entry in self._entries:
            return None
        self._entries.append(entry)
        logger.warning("%s", entry)
        if self.emit_warnings:
            warnings.warn(str(entry), PlotDiagnosticWarning, stacklevel=3)
        return entry

    def report_error(self, exc: PlotError) -> Optional[Diagnostic]:
        """Record a caught :class:`PlotError`."""
        return self.report(exc.message, exc.expression, category=exc.category)

    def clear(self) -> None:
        self._entries.clear()

    @property
    def messages(self) -> tuple[str, ...]:
        return tuple(entry.message for entry in self._entries)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __repr__(self) -> str:
        return f"DiagnosticLog({len(self._entries)} entries)"


__all__ = [
    "Diagnostic",
    "DiagnosticLog",
    "EvaluationTypeError",
    "MatrixShapeError",
    "PlotDiagnosticWarning",
    "PlotError",
    "PlotPolicyError",
    "TooManyUnknownsError",
]
