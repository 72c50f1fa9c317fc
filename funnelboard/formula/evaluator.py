"""FUNNELBOARD — Formula Evaluator.

Walks a compiled expression tree against a NumericEnvironment
(metric key → finite float) and returns a finite float, or raises a
FormulaError subtype. Also exposes the validate-only mode used when a
custom metric is saved.
"""

import math
from decimal import Context, Decimal, ROUND_HALF_UP
from typing import Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel

from funnelboard.config import settings
from funnelboard.core.logging import get_logger
from funnelboard.core.metric_registry import AVAILABLE_VARIABLES
from funnelboard.formula.errors import (
    DivisionByZeroError,
    EvaluationTimeoutError,
    FormulaError,
    NonFiniteValueError,
    UnknownIdentifierError,
)
from funnelboard.formula.parser import (
    BinaryOp,
    Call,
    CompiledFormula,
    Identifier,
    Negate,
    Node,
    Number,
    compile_formula,
)

logger = get_logger("formula.evaluator")

NumericEnvironment = Mapping[str, float]

ROUND_MAX_DIGITS = 15
_ROUND_CONTEXT = Context(prec=400, rounding=ROUND_HALF_UP)


def round_half_away(value: float, ndigits: float = 0) -> float:
    """Round half away from zero on the shortest decimal representation.

    round_half_away(2.5) == 3.0, round_half_away(-2.5) == -3.0 and
    round_half_away(2.675, 2) == 2.68 (Python's round() gives 2 and 2.67).
    ndigits is truncated to an integer and clamped to ±15.
    """
    digits = max(-ROUND_MAX_DIGITS, min(ROUND_MAX_DIGITS, int(ndigits)))
    exponent = Decimal(1).scaleb(-digits)
    rounded = Decimal(repr(value)).quantize(exponent, context=_ROUND_CONTEXT)
    return float(rounded)


class Interpreter:
    """Tree-walking interpreter with a node-visit budget."""

    def __init__(self, env: NumericEnvironment, formula: str, step_budget: int):
        self.env = env
        self.formula = formula
        self.step_budget = step_budget
        self.steps = 0

    def run(self, tree: Node) -> float:
        return self._visit(tree)

    def _visit(self, node: Node) -> float:
        self.steps += 1
        if self.steps > self.step_budget:
            raise EvaluationTimeoutError(
                f"Evaluation exceeded {self.step_budget} steps",
                self.formula,
                budget=self.step_budget,
            )

        if isinstance(node, Number):
            return node.value
        if isinstance(node, Identifier):
            return self._lookup(node)
        if isinstance(node, Negate):
            return -self._visit(node.operand)
        if isinstance(node, BinaryOp):
            return self._binary(node)
        if isinstance(node, Call):
            return self._call(node)
        raise TypeError(f"Unknown node type: {type(node).__name__}")

    def _lookup(self, node: Identifier) -> float:
        if node.name not in self.env:
            raise UnknownIdentifierError(
                "Unknown variable", self.formula, node.position, node.name
            )
        raw = self.env[node.name]
        # bool is an int subclass; numeric strings are not coerced
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise NonFiniteValueError(
                "Variable is not a number", self.formula, node.position, node.name
            )
        value = float(raw)
        if not math.isfinite(value):
            raise NonFiniteValueError(
                "Variable is not a finite number",
                self.formula,
                node.position,
                node.name,
            )
        return value

    def _binary(self, node: BinaryOp) -> float:
        left = self._visit(node.left)
        right = self._visit(node.right)

        if node.op == "+":
            result = left + right
        elif node.op == "-":
            result = left - right
        elif node.op == "*":
            result = left * right
        else:
            if right == 0:
                raise DivisionByZeroError(
                    "Division by zero", self.formula, node.position, node.op
                )
            result = left / right

        if not math.isfinite(result):
            raise NonFiniteValueError(
                "Arithmetic overflow", self.formula, node.position, node.op
            )
        return result

    def _call(self, node: Call) -> float:
        args = [self._visit(arg) for arg in node.args]
        if node.name == "abs":
            return abs(args[0])
        if node.name == "max":
            return max(args)
        if node.name == "min":
            return min(args)
        if node.name == "round":
            return round_half_away(*args)
        raise UnknownIdentifierError(
            "Unknown function", self.formula, node.position, node.name
        )


def evaluate(
    formula: Union[str, CompiledFormula],
    env: NumericEnvironment,
    step_budget: Optional[int] = None,
) -> float:
    """Evaluate a formula against a NumericEnvironment.

    Args:
        formula: Formula text, or a CompiledFormula to skip re-parsing
        env: Metric key → finite float; never modified
        step_budget: Max node visits (default: settings.formula_step_budget)

    Returns:
        A finite float

    Raises:
        FormulaError: One of its subtypes; never a raw runtime exception
    """
    compiled = formula if isinstance(formula, CompiledFormula) else compile_formula(formula)
    budget = step_budget if step_budget is not None else settings.formula_step_budget
    return Interpreter(env, compiled.source, budget).run(compiled.tree)


class FormulaValidation(BaseModel):
    """Result of validating a formula before it is saved."""

    valid: bool
    error: Optional[str] = None
    error_type: Optional[str] = None
    identifiers: List[str] = []


def validate_formula(
    formula: str,
    available_variables: Optional[Iterable[str]] = None,
    step_budget: Optional[int] = None,
) -> FormulaValidation:
    """Check a formula in validate-only mode.

    Uses the same compile step as evaluate(), then checks every referenced
    variable against available_variables (default: the metric registry)
    and that the tree fits the step budget. A formula reported valid
    here cannot fail evaluation with a syntax, construct or timeout error.
    """
    variables = set(AVAILABLE_VARIABLES if available_variables is None else available_variables)
    budget = step_budget if step_budget is not None else settings.formula_step_budget

    try:
        compiled = compile_formula(formula)
        unknown = sorted(compiled.identifiers - variables)
        if unknown:
            raise UnknownIdentifierError("Unknown variable", formula, token=unknown[0])
        if compiled.node_count > budget:
            raise EvaluationTimeoutError(
                f"Evaluation exceeded {budget} steps", formula, budget=budget
            )
    except FormulaError as e:
        logger.debug(f"Formula rejected: {e}", extra={"error_type": e.error_type})
        return FormulaValidation(valid=False, error=str(e), error_type=e.error_type)

    return FormulaValidation(valid=True, identifiers=sorted(compiled.identifiers))
