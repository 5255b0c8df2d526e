"""사칙연산/거듭제곱 수식 계산 플러그인."""

import ast
import logging
import math
import operator
import re

from rag_agent.errors import PluginError
from rag_agent.plugins import PluginResult

logger = logging.getLogger(__name__)

_EXPR_CHARS = r"[\d\s+\-*/().^]+"
TRIGGER_PATTERNS: list[re.Pattern] = [
    re.compile(rf"what\s+(?:is|equals)\s+({_EXPR_CHARS})", re.IGNORECASE),
    re.compile(rf"calculate\s+({_EXPR_CHARS})", re.IGNORECASE),
    re.compile(rf"evaluate\s+({_EXPR_CHARS})", re.IGNORECASE),
    re.compile(rf"compute\s+({_EXPR_CHARS})", re.IGNORECASE),
    re.compile(rf"solve\s+({_EXPR_CHARS})", re.IGNORECASE),
]

_VALID_CHARS = re.compile(r"^[\d\s+\-*/().^]+$")
_CONSECUTIVE_OPS = re.compile(r"[+\-*/^]{2,}")
_DIVISION_BY_ZERO = re.compile(r"/\s*0(?!\.\d)")
MAX_EXPONENT = 1000

_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


def extract_expression(text: str) -> str | None:
    for pattern in TRIGGER_PATTERNS:
        match = pattern.search(text)
        if match:
            expr = match.group(1).strip().rstrip(".")
            if re.search(r"\d", expr):
                return expr
    return None


def is_valid_expression(expr: str) -> bool:
    if not _VALID_CHARS.match(expr):
        return False

    depth = 0
    for ch in expr:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                return False
    if depth != 0:
        return False

    if _CONSECUTIVE_OPS.search(expr):
        return False
    return not _DIVISION_BY_ZERO.search(expr)


def _eval_node(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return float(node.value)
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        left, right = _eval_node(node.left), _eval_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise PluginError(f"exponent too large: {right}")
        return _BIN_OPS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    raise PluginError(f"unsupported expression element: {type(node).__name__}")


def evaluate_expression(expr: str) -> float:
    """수식을 계산한다. eval 대신 AST 를 직접 순회하며 산술 노드만 허용한다.

    모든 연산은 부동소수점으로 수행한다.

    Raises:
        PluginError: 형식이 잘못되었거나 결과가 유한한 수가 아닌 경우.
    """
    compact = re.sub(r"\s+", "", expr)
    if not is_valid_expression(compact):
        raise PluginError("Invalid expression format")

    try:
        tree = ast.parse(compact.replace("^", "**"), mode="eval")
        value = _eval_node(tree)
        if isinstance(value, complex) or not math.isfinite(value):
            raise PluginError("Result is not a finite number")
    except (SyntaxError, ZeroDivisionError, OverflowError) as e:
        raise PluginError(f"Evaluation failed: {e}") from e
    return round(value, 6)


def format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


class MathPlugin:
    name = "math"
    description = "Evaluate mathematical expressions safely"

    async def run(self, text: str) -> PluginResult | None:
        expr = extract_expression(text)
        if expr is None:
            return None

        try:
            value = evaluate_expression(expr)
        except PluginError as e:
            logger.warning("수식 계산 실패: %s (%s)", expr, e)
            return PluginResult(
                name=self.name,
                result=(
                    f'Sorry, I couldn\'t evaluate the expression "{expr}". '
                    "Please check if it's a valid mathematical expression."
                ),
                success=False,
                metadata={"expression": expr, "error": str(e)},
            )

        return PluginResult(
            name=self.name,
            result=f"The result of {expr} is {format_number(value)}",
            success=True,
            metadata={"expression": expr, "result": value},
        )
