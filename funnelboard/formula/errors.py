"""FUNNELBOARD — Formula Error Hierarchy.

Exception Hierarchy:
    FormulaError (base)
    ├── FormulaSyntaxError        - Malformed expression
    ├── UnknownIdentifierError    - Name not in the environment / not a function
    ├── DisallowedConstructError  - Forbidden character, construct or size
    ├── DivisionByZeroError       - Right operand of '/' evaluated to zero
    ├── EvaluationTimeoutError    - Step budget exhausted
    └── NonFiniteValueError       - NaN / Infinity entered or produced

Every outcome of evaluating a user formula is one of these, so callers can
catch FormulaError around each metric and show an error badge instead.
"""

from typing import Optional


class FormulaError(Exception):
    """Base exception for all formula parsing and evaluation errors."""

    error_type = "formula_error"

    def __init__(
        self,
        message: str,
        formula: Optional[str] = None,
        position: Optional[int] = None,
        token: Optional[str] = None,
    ):
        self.message = message
        self.formula = formula
        self.position = position
        self.token = token
        super().__init__(self.message)

    @property
    def details(self) -> Optional[str]:
        if self.token is not None and self.position is not None:
            return f"{self.token!r} at position {self.position}"
        if self.token is not None:
            return repr(self.token)
        if self.position is not None:
            return f"at position {self.position}"
        return None

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class FormulaSyntaxError(FormulaError):
    """The formula does not match the expression grammar."""

    error_type = "syntax_error"


class UnknownIdentifierError(FormulaError):
    """
    A name is neither an environment variable nor an allowed function.

    The offending name is available as ``token``.
    """

    error_type = "unknown_identifier"


class DisallowedConstructError(FormulaError):
    """
    The formula uses something outside the allowed language.

    Covers forbidden characters, member access, dunder names, oversized
    literals and exceeding the depth/node limits.
    """

    error_type = "disallowed_construct"


class DivisionByZeroError(FormulaError):
    """Division by zero during evaluation."""

    error_type = "division_by_zero"


class EvaluationTimeoutError(FormulaError):
    """Evaluation exceeded its step budget."""

    error_type = "timeout"

    def __init__(self, message: str, formula: Optional[str] = None, budget: int = 0):
        super().__init__(message, formula)
        self.budget = budget


class NonFiniteValueError(FormulaError):
    """
    A value is NaN or infinite.

    Raised when the environment supplies a non-finite number or when
    arithmetic overflows, so such values never reach the dashboard.
    """

    error_type = "non_finite_value"
