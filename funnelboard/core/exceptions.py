"""FUNNELBOARD — Input Validation Errors.

Raised when a funnel, filter rule, custom metric or goal is rejected
before it reaches storage. Formula evaluation errors live in
funnelboard.formula.errors.
"""

from typing import Any


class ValidationError(Exception):
    """
    Input validation failed.

    Used for validating user-authored definitions before persisting them.
    """

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value!r})"
        return f"{self.field}: {self.message}"
