"""Evaluation oracle boundary for plotted expressions.

Purpose
-------
The plotting core never interprets expressions itself. It asks an *oracle*
to evaluate an expression at given variable bindings and receives a tagged
:class:`EvalResult` back. The tag is what the dispatcher branches on; no
exception is raised across this boundary for ordinary evaluation failures.

Concepts and structure
----------------------
- :class:`ResultKind` enumerates the closed set of outcomes.
- :func:`classify_value` turns a raw value (SymPy number, Python scalar,
  string, matrix, nested list, :class:`System`) into an :class:`EvalResult`.
- :class:`EvaluationContext` is the explicit set of definitions visible to
  an expression (the "sheet"). Anything not defined there is a free variable.
- :class:`SympyOracle` is the default oracle backed by SymPy.

Important gotchas
-----------------
- Matrix values are stored as 2-D NumPy *object* arrays so cells can hold
  text, numbers or nested matrices side by side.
- Definitions are expanded transitively when computing free variables; a
  cycle of definitions is reported as an evaluation error, not a hang.

Examples
--------
>>> import sympy as sp
>>> x = sp.Symbol("x")
>>> oracle = SympyOracle()
>>> oracle.evaluate(x**2, {x: 3.0}).to_double()
9.0
>>> oracle.evaluate(sp.sqrt(x), {x: -1.0}).kind
<ResultKind.COMPLEX: 'complex'>
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, Optional, Protocol

import numpy as np
import sympy as sp
from sympy.core.symbol import Symbol

from .diagnostics import EvaluationTypeError

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

# Guards against self-referential definitions such as a := a + 1.
_MAX_DEFINITION_DEPTH = 32


class System(sp.Tuple):
    """Aggregate of independent sub-expressions, each plotted as its own trace.

    >>> x, y = sp.symbols("x y")
    >>> System(sp.sin(x), x**2 + y**2 - 1).args[0]
    sin(x)
    """

    def __repr__(self) -> str:
        return "System(" + ", ".join(repr(arg) for arg in self.args) + ")"

    __str__ = __repr__


class ResultKind(Enum):
    """Closed set of oracle outcomes."""

    SCALAR = "scalar"
    COMPLEX = "complex"
    MATRIX = "matrix"
    SYSTEM = "system"
    ERROR = "error"


def type_error_message(kind: ResultKind) -> str:
    """Return the user-facing message for a non-scalar result kind."""
    return f"The type of result is {kind.value}."


@dataclass(frozen=True)
class EvalResult:
    """Tagged value returned by an oracle.

    Parameters
    ----------
    kind : ResultKind
        Outcome tag.
    value : Any
        ``float`` or ``str`` for scalars, ``complex`` for complex results,
        a 2-D object ``numpy.ndarray`` for matrices, a tuple of expressions
        for systems, ``None`` for errors.
    message : str
        Failure description for :attr:`ResultKind.ERROR`.
    """

    kind: ResultKind
    value: Any = None
    message: str = ""

    @classmethod
    def error(cls, message: str) -> "EvalResult":
        return cls(ResultKind.ERROR, None, message)

    @property
    def is_text(self) -> bool:
        return self.kind is ResultKind.SCALAR and isinstance(self.value, str)

    @property
    def is_real(self) -> bool:
        """True for numeric (non-text) scalar results."""
        return self.kind is ResultKind.SCALAR and not isinstance(self.value, str)

    @property
    def text(self) -> str:
        if not self.is_text:
            raise TypeError(f"{self.kind.value} result carries no text")
        return self.value

    def to_double(self) -> float:
        """Convert to ``float``.

        Complex values are projected onto their real part. Text, matrices,
        systems and errors raise :class:`EvaluationTypeError`.
        """
        if self.kind is ResultKind.SCALAR:
            if isinstance(self.value, str):
                raise EvaluationTypeError("The type of result is text.")
            return float(self.value)
        if self.kind is ResultKind.COMPLEX:
            return float(self.value.real)
        if self.kind is ResultKind.ERROR:
            raise EvaluationTypeError(self.message or "Evaluation failed.")
        raise EvaluationTypeError(type_error_message(self.kind))

    @property
    def shape(self) -> tuple[int, int]:
        if self.kind is not ResultKind.MATRIX:
            raise TypeError(f"{self.kind.value} result has no matrix shape")
        rows, cols = self.value.shape
        return int(rows), int(cols)

    @property
    def rows(self) -> int:
        return self.shape[0]

    @property
    def cols(self) -> int:
        return self.shape[1]

    def cell(self, row: int, col: int) -> "EvalResult":
        """Return the classified matrix cell at ``(row, col)``."""
        if self.kind is not ResultKind.MATRIX:
            raise TypeError(f"{self.kind.value} result has no cells")
        return classify_value(self.value[row, col])

    @property
    def items(self) -> tuple[Any, ...]:
        if self.kind is not ResultKind.SYSTEM:
            raise TypeError(f"{self.kind.value} result has no sub-expressions")
        return tuple(self.value)


def _object_matrix(rows: list[list[Any]]) -> np.ndarray:
    """Build a 2-D object array without letting NumPy broadcast nested cells."""
    n_rows = len(rows)
    n_cols = max((len(row) for row in rows), default=0)
    if any(len(row) != n_cols for row in rows):
        raise ValueError("matrix rows must all have the same length")
    out = np.empty((n_rows, n_cols), dtype=object)
    for i, row in enumerate(rows):
        for j, cell in enumerate(row):
            out[i, j] = cell
    return out


def column(*cells: Any) -> np.ndarray:
    """Build a column matrix whose cells may themselves be matrices or text.

    Nested Python lists are ambiguous (a list of lists reads as rows), so
    shape and group columns are written with this helper.

    >>> column("circle", [0, 0, 1]).shape
    (2, 1)
    """
    return _object_matrix([[cell] for cell in cells])


def as_object_matrix(value: Any) -> np.ndarray:
    """Return ``value`` (matrix, 2-D array, nested or flat sequence) as an object matrix.

    Flat sequences and 1-D arrays become column vectors.
    """
    if isinstance(value, np.ndarray):
        if value.ndim == 2:
            return _object_matrix([list(row) for row in value])
        if value.ndim == 1:
            return _object_matrix([[cell] for cell in value])
        raise ValueError(f"cannot treat a {value.ndim}-D array as a matrix")
    if isinstance(value, sp.MatrixBase):
        return _object_matrix(value.tolist())
    if isinstance(value, (list, tuple)):
        if value and all(isinstance(row, (list, tuple)) for row in value):
            return _object_matrix([list(row) for row in value])
        return _object_matrix([[cell] for cell in value])
    raise TypeError(f"cannot treat {type(value).__name__} as a matrix")


def _classify_number(value: Any) -> EvalResult:
    if isinstance(value, sp.Basic):
        if value.free_symbols:
            names = ", ".join(sorted(str(s) for s in value.free_symbols))
            return EvalResult.error(f"Undefined variable(s): {names}.")
        if value is sp.nan:
            return EvalResult(ResultKind.SCALAR, float("nan"))
        if value.has(sp.zoo):
            return EvalResult.error("Division by zero.")
    try:
        number = complex(value)
    except (TypeError, ValueError) as exc:
        return EvalResult.error(f"Not a number: {exc}")
    if number.imag != 0:
        return EvalResult(ResultKind.COMPLEX, number)
    return EvalResult(ResultKind.SCALAR, float(number.real))


def classify_value(value: Any) -> EvalResult:
    """Map a raw value to a tagged :class:`EvalResult`.

    >>> classify_value('"label"').text
    'label'
    >>> classify_value([[1, 2], [3, 4]]).shape
    (2, 2)
    """
    if isinstance(value, EvalResult):
        return value
    if isinstance(value, str):
        return EvalResult(ResultKind.SCALAR, value.strip().strip('"'))
    if isinstance(value, System):
        return EvalResult(ResultKind.SYSTEM, tuple(value.args))
    if isinstance(value, (sp.MatrixBase, list, np.ndarray)) or (
        isinstance(value, tuple) and not isinstance(value, sp.Tuple)
    ):
        if isinstance(value, np.ndarray) and value.ndim == 0:
            return classify_value(value.item())
        try:
            return EvalResult(ResultKind.MATRIX, as_object_matrix(value))
        except (TypeError, ValueError) as exc:
            return EvalResult.error(str(exc))
    if isinstance(value, (bool, int, float, complex, np.number, sp.Basic)):
        return _classify_number(value)
    return EvalResult.error(f"Unsupported result type: {type(value).__name__}.")


def symbols_in(value: Any) -> set[Symbol]:
    """Return the SymPy symbols referenced by ``value`` (recursing into containers)."""
    if isinstance(value, (sp.Basic, sp.MatrixBase)):
        return set(value.free_symbols)
    if isinstance(value, np.ndarray):
        value = value.ravel().tolist()
    if isinstance(value, (list, tuple)):
        out: set[Symbol] = set()
        for item in value:
            out |= symbols_in(item)
        return out
    return set()


def _sort_symbols(symbols: Iterable[Symbol]) -> tuple[Symbol, ...]:
    return tuple(sorted(symbols, key=lambda s: s.name))


class EvaluationContext(Mapping):
    """Explicit definitions visible to plotted expressions.

    Parameters
    ----------
    definitions : mapping, optional
        ``Symbol`` (or symbol name) to value. Values may be numbers,
        expressions referencing other definitions, matrices, nested lists
        or :class:`System` objects.
    **named : Any
        Additional definitions keyed by symbol name.

    Examples
    --------
    >>> a, x = sp.symbols("a x")
    >>> ctx = EvaluationContext({a: 2})
    >>> ctx.free_variables(a * x)
    (x,)
    """

    def __init__(self, definitions: Optional[Mapping[Any, Any]] = None, **named: Any) -> None:
        self._definitions: Dict[Symbol, Any] = {}
        for key, value in dict(definitions or {}).items():
            self.define(key, value)
        for key, value in named.items():
            self.define(key, value)

    @staticmethod
    def _key(key: Any) -> Symbol:
        if isinstance(key, Symbol):
            return key
        if isinstance(key, str):
            return Symbol(key)
        raise TypeError(f"definition key must be Symbol or str, got {type(key).__name__}")

    def define(self, key: Symbol | str, value: Any) -> None:
        self._definitions[self._key(key)] = value

    def undefine(self, key: Symbol | str) -> None:
        self._definitions.pop(self._key(key), None)

    def is_defined(self, key: Symbol | str) -> bool:
        return self._key(key) in self._definitions

    def __getitem__(self, key: Any) -> Any:
        return self._definitions[self._key(key)]

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def free_variables(self, expr: Any) -> tuple[Symbol, ...]:
        """Return the undefined symbols of ``expr``, expanding definitions.

        The result is sorted by symbol name so the same expression always
        yields the same variable order.
        """
        free: set[Symbol] = set()
        seen: set[Symbol] = set()
        pending = list(symbols_in(expr))
        while pending:
            sym = pending.pop()
            if sym in seen:
                continue
            seen.add(sym)
            if sym in self._definitions:
                pending.extend(symbols_in(self._definitions[sym]))
            else:
                free.add(sym)
        return _sort_symbols(free)

    def __repr__(self) -> str:
        names = ", ".join(str(s) for s in _sort_symbols(self._definitions))
        return f"EvaluationContext({names})"


class Oracle(Protocol):
    """Anything that can evaluate an expression at variable bindings."""

    def evaluate(
        self,
        expr: Any,
        bindings: Optional[Mapping[Symbol, Any]] = None,
        context: Optional[Mapping[Symbol, Any]] = None,
    ) -> EvalResult:
        ...


class SympyOracle:
    """Default oracle: substitutes definitions and bindings, then ``evalf``.

    Every failure is returned as an :attr:`ResultKind.ERROR` result; this
    method does not raise for bad expressions.
    """

    def __init__(self, *, precision: int = 15) -> None:
        self.precision = int(precision)
        self.calls = 0

    def evaluate(
        self,
        expr: Any,
        bindings: Optional[Mapping[Symbol, Any]] = None,
        context: Optional[Mapping[Symbol, Any]] = None,
    ) -> EvalResult:
        self.calls += 1
        scope: Dict[Symbol, Any] = dict(context or {})
        scope.update(bindings or {})
        try:
            return self._evaluate(expr, scope, depth=0)
        except (ArithmeticError, TypeError, ValueError, AttributeError, NotImplementedError, RecursionError) as exc:
            logger.debug("evaluation of %s failed: %s", expr, exc)
            return EvalResult.error(str(exc) or type(exc).__name__)

    def _evaluate(self, expr: Any, scope: Dict[Symbol, Any], *, depth: int) -> EvalResult:
        if depth > _MAX_DEFINITION_DEPTH:
            return EvalResult.error("Definitions are nested too deeply (cyclic definition?).")

        if isinstance(expr, EvalResult) or isinstance(expr, str):
            return classify_value(expr)

        if isinstance(expr, Symbol) and expr in scope and not isinstance(scope[expr], sp.Basic):
            return self._evaluate(scope[expr], scope, depth=depth + 1)

        if isinstance(expr, System):
            return EvalResult(ResultKind.SYSTEM, tuple(expr.args))

        if isinstance(expr, (list, tuple, np.ndarray)) and not isinstance(expr, sp.Tuple):
            cells = as_object_matrix(expr)
            out = np.empty(cells.shape, dtype=object)
            for index, cell in np.ndenumerate(cells):
                result = self._evaluate(cell, scope, depth=depth + 1)
                out[index] = result if result.kind is ResultKind.ERROR else result.value
            return EvalResult(ResultKind.MATRIX, out)

        if isinstance(expr, (sp.Basic, sp.MatrixBase)):
            return classify_value(self._substitute(expr, scope))

        return classify_value(expr)

    def _substitute(self, expr: Any, scope: Dict[Symbol, Any]) -> Any:
        replacements = {
            sym: sp.sympify(value)
            for sym, value in scope.items()
            if isinstance(value, (sp.Basic, int, float, complex, np.number))
        }
        value = expr
        for _ in range(_MAX_DEFINITION_DEPTH):
            pending = symbols_in(value) & replacements.keys()
            if not pending:
                break
            value = value.xreplace({sym: replacements[sym] for sym in pending})
        else:
            raise RecursionError("Definitions are nested too deeply (cyclic definition?).")
        if isinstance(value, System):
            return value
        return value.evalf(self.precision)


def as_float(obj: Any) -> float:
    """Convert user input (number, numeric string or SymPy expression) to ``float``.

    Strings are parsed with SymPy, so ``"2*pi"`` is accepted. Complex values
    must have a zero imaginary part.

    >>> as_float("2*pi") > 6.28
    True
    """
    if isinstance(obj, bool):
        raise ValueError(f"Could not convert {obj!r} to float.")
    if isinstance(obj, str):
        text = obj.strip()
        if not text:
            raise ValueError("Cannot convert empty string to float.")
        try:
            return float(text)
        except ValueError:
            pass
        try:
            obj = sp.sympify(text)
        except (sp.SympifyError, SyntaxError, TypeError) as exc:
            raise ValueError(f"Could not convert {text!r} to float.") from exc
    result = classify_value(obj.evalf() if isinstance(obj, sp.Basic) else obj)
    if not result.is_real:
        raise ValueError(f"Could not convert {obj!r} to float ({result.kind.value}).")
    return float(result.value)


__all__ = [
    "EvalResult",
    "EvaluationContext",
    "Oracle",
    "ResultKind",
    "SympyOracle",
    "System",
    "as_float",
    "as_object_matrix",
    "classify_value",
    "column",
    "symbols_in",
    "type_error_message",
]
