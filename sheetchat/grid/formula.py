"""Minimal formula evaluator for workbook formula cells.

Workbooks written by openpyxl carry formulas without cached results, so
the grid store evaluates the common arithmetic subset itself. Tokenizing
is delegated to openpyxl's formula tokenizer; this module only parses the
token stream (precedence climbing) and evaluates it against a cell
resolver.

Supported: numbers, strings, booleans, cell references (optionally
sheet-qualified), ranges as function arguments, prefix +/-, postfix %,
infix + - * / ^ & = <> < > <= >=, and SUM, AVERAGE, MIN, MAX, COUNT,
ROUND, ABS, IF, CONCATENATE. Anything else raises FormulaError.
"""

from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from openpyxl.formula.tokenizer import Token, Tokenizer, TokenizerError

from sheetchat.errors import MalformedReference
from sheetchat.grid.addressing import CellRef, parse_range

# Resolver signature: (sheet name or None for the current sheet, cell) -> value
CellResolver = Callable[[str | None, CellRef], Any]

_INFIX_PRECEDENCE: dict[str, int] = {
    "=": 1,
    "<>": 1,
    "<": 1,
    ">": 1,
    "<=": 1,
    ">=": 1,
    "&": 2,
    "+": 3,
    "-": 3,
    "*": 4,
    "/": 4,
    "^": 5,
}

# Excel keeps 15 significant digits; trims float noise such as 220.00000000000003
_SIGNIFICANT_DIGITS = 15


class FormulaError(Exception):
    """Formula cannot be evaluated by this evaluator."""


class _RangeValue(list):
    """Flattened cell values of a range argument."""


def _to_number(value: Any) -> int | float:
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value) if value.strip() else 0
        except ValueError:
            raise FormulaError(f"Value '{value}' is not numeric") from None
    raise FormulaError(f"Cannot use {type(value).__name__} as a number")


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _numbers(args: list[Any]) -> list[int | float]:
    """Collect numeric arguments the way aggregate functions see them.

    Range members that are empty, text or boolean are skipped; scalar
    arguments are coerced.
    """
    values: list[int | float] = []
    for arg in args:
        if isinstance(arg, _RangeValue):
            values.extend(
                v for v in arg
                if isinstance(v, (int, float)) and not isinstance(v, bool)
            )
        else:
            values.append(_to_number(arg))
    return values


def _fn_sum(args: list[Any]) -> int | float:
    return sum(_numbers(args))


def _fn_average(args: list[Any]) -> float:
    values = _numbers(args)
    if not values:
        raise FormulaError("AVERAGE of no numbers")
    return sum(values) / len(values)


def _fn_min(args: list[Any]) -> int | float:
    values = _numbers(args)
    return min(values) if values else 0


def _fn_max(args: list[Any]) -> int | float:
    values = _numbers(args)
    return max(values) if values else 0


def _fn_count(args: list[Any]) -> int:
    return len(_numbers([a for a in args if isinstance(a, _RangeValue)])) + sum(
        1 for a in args
        if not isinstance(a, _RangeValue)
        and isinstance(a, (int, float)) and not isinstance(a, bool)
    )


def _fn_round(args: list[Any]) -> int | float:
    if len(args) not in (1, 2):
        raise FormulaError("ROUND takes 1 or 2 arguments")
    digits = int(_to_number(args[1])) if len(args) == 2 else 0
    # Half away from zero.
    scaled = Decimal(str(_to_number(args[0]))).scaleb(digits)
    result = float(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP).scaleb(-digits))
    return int(result) if digits <= 0 else result


def _fn_abs(args: list[Any]) -> int | float:
    if len(args) != 1:
        raise FormulaError("ABS takes 1 argument")
    return abs(_to_number(args[0]))


def _fn_concatenate(args: list[Any]) -> str:
    parts: list[str] = []
    for arg in args:
        if isinstance(arg, _RangeValue):
            parts.extend(_to_text(v) for v in arg)
        else:
            parts.append(_to_text(arg))
    return "".join(parts)


def _fn_if(args: list[Any]) -> Any:
    if len(args) not in (2, 3):
        raise FormulaError("IF takes 2 or 3 arguments")
    condition = args[0]
    truthy = bool(_to_number(condition)) if not isinstance(condition, bool) else condition
    if truthy:
        return args[1]
    return args[2] if len(args) == 3 else False


_FUNCTIONS: dict[str, Callable[[list[Any]], Any]] = {
    "SUM": _fn_sum,
    "AVERAGE": _fn_average,
    "MIN": _fn_min,
    "MAX": _fn_max,
    "COUNT": _fn_count,
    "ROUND": _fn_round,
    "ABS": _fn_abs,
    "IF": _fn_if,
    "CONCATENATE": _fn_concatenate,
}


def _compare(op: str, left: Any, right: Any) -> bool:
    if isinstance(left, str) or isinstance(right, str):
        left, right = _to_text(left).lower(), _to_text(right).lower()
    else:
        left, right = _to_number(left), _to_number(right)
    if op == "=":
        return left == right
    if op == "<>":
        return left != right
    if op == "<":
        return left < right
    if op == ">":
        return left > right
    if op == "<=":
        return left <= right
    return left >= right


def _apply_infix(op: str, left: Any, right: Any) -> Any:
    if isinstance(left, _RangeValue) or isinstance(right, _RangeValue):
        raise FormulaError("Ranges are only supported as function arguments")
    if op == "&":
        return _to_text(left) + _to_text(right)
    if _INFIX_PRECEDENCE[op] == 1:
        return _compare(op, left, right)

    a, b = _to_number(left), _to_number(right)
    if op == "+":
        return a + b
    if op == "-":
        return a - b
    if op == "*":
        return a * b
    if op == "/":
        if b == 0:
            raise FormulaError("#DIV/0!")
        return a / b
    return a ** b


class _Parser:
    """Precedence-climbing parser over openpyxl tokens, evaluating as it goes."""

    def __init__(self, tokens: list[Token], resolve: CellResolver) -> None:
        self._tokens = [t for t in tokens if t.type != Token.WSPACE]
        self._pos = 0
        self._resolve = resolve

    def parse(self) -> Any:
        if not self._tokens:
            raise FormulaError("Empty formula")
        value = self._expression(1)
        if self._peek() is not None:
            raise FormulaError(f"Unexpected token '{self._peek().value}'")
        if isinstance(value, _RangeValue):
            raise FormulaError("A formula cannot evaluate to a range")
        return value

    def _peek(self) -> Token | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _advance(self) -> Token:
        token = self._peek()
        if token is None:
            raise FormulaError("Unexpected end of formula")
        self._pos += 1
        return token

    def _expression(self, min_precedence: int) -> Any:
        left = self._unary()
        while True:
            token = self._peek()
            if token is None or token.type != Token.OP_IN:
                return left
            precedence = _INFIX_PRECEDENCE.get(token.value)
            if precedence is None:
                raise FormulaError(f"Unsupported operator '{token.value}'")
            if precedence < min_precedence:
                return left
            self._advance()
            right = self._expression(precedence + 1)
            left = _apply_infix(token.value, left, right)

    def _unary(self) -> Any:
        token = self._peek()
        if token is not None and token.type == Token.OP_PRE:
            self._advance()
            operand = self._unary()
            return -_to_number(operand) if token.value == "-" else _to_number(operand)

        value = self._primary()
        while (token := self._peek()) is not None and token.type == Token.OP_POST:
            self._advance()
            value = _to_number(value) / 100
        return value

    def _primary(self) -> Any:
        token = self._advance()

        if token.type == Token.OPERAND:
            return self._operand(token)

        if token.type == Token.PAREN and token.subtype == Token.OPEN:
            value = self._expression(1)
            closing = self._advance()
            if closing.type != Token.PAREN or closing.subtype != Token.CLOSE:
                raise FormulaError("Expected ')'")
            return value

        if token.type == Token.FUNC and token.subtype == Token.OPEN:
            return self._function(token.value[:-1].upper())

        raise FormulaError(f"Unexpected token '{token.value}'")

    def _operand(self, token: Token) -> Any:
        if token.subtype == Token.NUMBER:
            if token.value.isdigit():
                return int(token.value)
            return float(token.value)
        if token.subtype == Token.TEXT:
            return token.value[1:-1].replace('""', '"')
        if token.subtype == Token.LOGICAL:
            return token.value.upper() == "TRUE"
        if token.subtype == Token.RANGE:
            return self._reference(token.value)
        raise FormulaError(f"Formula error value {token.value}")

    def _reference(self, ref: str) -> Any:
        sheet: str | None = None
        if "!" in ref:
            sheet, _, ref = ref.rpartition("!")
            sheet = sheet.strip("'")
        try:
            start, end = parse_range(ref)
        except MalformedReference as e:
            raise FormulaError(str(e)) from e

        if ":" not in ref:
            return self._resolve(sheet, start)
        return _RangeValue(
            self._resolve(sheet, CellRef(row=row, col=col))
            for row in range(start.row, end.row + 1)
            for col in range(start.col, end.col + 1)
        )

    def _function(self, name: str) -> Any:
        func = _FUNCTIONS.get(name)
        if func is None:
            raise FormulaError(f"Unsupported function {name}")

        args: list[Any] = []
        token = self._peek()
        if token is not None and token.type == Token.FUNC and token.subtype == Token.CLOSE:
            self._advance()
            return func(args)

        while True:
            args.append(self._expression(1))
            token = self._advance()
            if token.type == Token.SEP and token.subtype == Token.ARG:
                continue
            if token.type == Token.FUNC and token.subtype == Token.CLOSE:
                return func(args)
            raise FormulaError(f"Unexpected token '{token.value}' in {name}()")


def _normalize(value: Any) -> Any:
    if isinstance(value, float):
        return float(f"{value:.{_SIGNIFICANT_DIGITS}g}")
    return value


def evaluate_formula(expression: str, resolve: CellResolver) -> Any:
    """Evaluate a formula expression.

    Args:
        expression: Formula with or without the leading '=' (e.g. "C2*0.1").
        resolve: Callback returning the value of a referenced cell. It is
            responsible for evaluating referenced formula cells and for
            detecting circular references.

    Returns:
        The computed scalar (number, string or boolean).

    Raises:
        FormulaError: For unsupported syntax or functions, non-numeric
            operands, division by zero and similar evaluation failures.
    """
    text = expression if expression.startswith("=") else f"={expression}"
    try:
        tokens = Tokenizer(text).items
    except TokenizerError as e:
        raise FormulaError(str(e)) from e
    return _normalize(_Parser(tokens, resolve).parse())
