# -----------------------------------------------------------------------------
# Expression Preprocessor
# Purpose:
#   Turn each raw input line into a parsed sympy tree, classify its syntactic
#   role, collect its free symbols and compile it for repeated evaluation.
# Input dialect (ascii math):
#   - `^` is power, implicit multiplication is allowed ("5x", "2(a+b)")
#   - `name = value`            plain assignment
#   - `name(p, q) = body`       function assignment
#   - `y' = value`              isolated first-order ODE (vector field)
#   - anything else             bare expression ("formula")
#   - blank line                inert placeholder that keeps indices stable
# -----------------------------------------------------------------------------

from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import sympy
from sympy.core.function import AppliedUndef
from sympy.parsing.sympy_parser import (
    convert_xor,
    implicit_multiplication,
    parse_expr,
    standard_transformations,
)
from sympy.printing.pycode import pycode
from tokenize import TokenError

from .safe_eval import compile_source, safe_eval
from .types import (
    CONTROLLED_VARIABLES,
    DEPENDENT,
    DERIVATIVE,
    ExpressionKind,
    Metadata,
)


class ExpressionSyntaxError(SyntaxError):
    # Malformed input the parser itself cannot attribute to sympy
    pass


TRANSFORMS = standard_transformations + (implicit_multiplication, convert_xor)

# `y'` is not a valid Python name, so it travels through sympy as this token.
DERIVATIVE_TOKEN = "dydx__"

# Calls to these names map onto sympy's own functions; every other called
# name is an undefined (user) function resolved from the scope at runtime.
SYMPY_FUNCTIONS: Dict[str, Any] = {
    "sin": sympy.sin, "cos": sympy.cos, "tan": sympy.tan,
    "asin": sympy.asin, "acos": sympy.acos, "atan": sympy.atan,
    "sinh": sympy.sinh, "cosh": sympy.cosh, "tanh": sympy.tanh,
    "sqrt": sympy.sqrt, "exp": sympy.exp, "log": sympy.log, "ln": sympy.log,
    "abs": sympy.Abs, "floor": sympy.floor, "ceil": sympy.ceiling,
}

_NAME = r"[A-Za-z_]\w*"
_IDENT = re.compile(_NAME)
_CALLED = re.compile(rf"({_NAME})\s*\(")
# Whole identifier followed by a prime; a leading digit run is a coefficient ("2y'")
_PRIME = re.compile(rf"(?<!\w)(\d*)({_NAME})'")
# A single `=` that is not part of ==, <=, >= or !=
_EQUALS = re.compile(r"(?<![=<>!])=(?!=)")
_FUNCTION_HEAD = re.compile(
    rf"^\s*({_NAME})\s*\(\s*((?:{_NAME})(?:\s*,\s*{_NAME})*)?\s*\)\s*$"
)
_NAME_HEAD = re.compile(rf"^\s*({_NAME})\s*$")


def _to_external(name: str) -> str:
    return DERIVATIVE if name == DERIVATIVE_TOKEN else name


def normalize_source(text: str) -> str:
    """
    Prepare raw text for sympy:
      - fancy quotes copied from rich editors become a plain apostrophe
      - `y'` becomes DERIVATIVE_TOKEN
    Primes on other names are left alone; sympy rejects them as syntax errors.
    """
    s = text.replace("‘", "'").replace("’", "'").replace("`", "'")

    def derivative(m: re.Match) -> str:
        coefficient, name = m.group(1), m.group(2)
        if name != DEPENDENT:
            return m.group(0)
        # keep "2y'" as an implicit product
        return f"{coefficient} {DERIVATIVE_TOKEN}" if coefficient else DERIVATIVE_TOKEN

    return _PRIME.sub(derivative, s)


def _local_dict(text: str, params: Tuple[str, ...] = ()) -> Dict[str, Any]:
    """
    Pin every identifier to a Symbol (or a Function when it is called) so that
    names like `beta`, `N` or `S` are never swapped for sympy objects.
    """
    called = set(_CALLED.findall(text))
    local: Dict[str, Any] = {}
    for name in _IDENT.findall(text):
        if name in local:
            continue
        if name in called and name not in params:
            local[name] = SYMPY_FUNCTIONS.get(name) or sympy.Function(name)
        else:
            local[name] = sympy.Symbol(name)
    return local


def parse_body(text: str, params: Tuple[str, ...] = ()) -> sympy.Expr:
    """Parse one side of an expression; tokenizer failures surface as syntax errors."""
    try:
        return parse_expr(
            text,
            local_dict=_local_dict(text, params),
            transformations=TRANSFORMS,
            evaluate=False,
        )
    except TokenError as e:
        raise ExpressionSyntaxError(f"Could not tokenize expression: {text!r}") from e


@dataclass
class CompiledExpression:
    """Executable form of a value expression (printed with sympy, run by safe_eval)."""
    source: str
    code: Any = field(repr=False, default=None)

    def evaluate(self, scope: Mapping[str, Any]) -> Any:
        if self.code is None:
            return None
        return safe_eval(self.code, scope)


@dataclass
class CompiledFunction:
    """
    Executable form of `name(params) = body`.
    Evaluating it yields a Python callable closed over the scope it was
    evaluated in; call arguments bind the parameters.
    """
    name: str
    params: Tuple[str, ...]
    body: CompiledExpression

    def evaluate(self, scope: Mapping[str, Any]):
        captured = dict(scope)
        name, params, body = self.name, self.params, self.body

        def user_function(*args):
            if len(args) != len(params):
                raise TypeError(f"{name}() takes {len(params)} argument(s), got {len(args)}")
            bound = dict(captured)
            bound.update(zip(params, args))
            return body.evaluate(bound)

        user_function.__name__ = name
        return user_function


def compile_tree(tree: Optional[sympy.Expr]) -> CompiledExpression:
    if tree is None:
        return CompiledExpression(source="")
    source = pycode(tree, allow_unknown_functions=True, fully_qualified_modules=False)
    return CompiledExpression(source=source, code=compile_source(source))


@dataclass
class ParsedExpression:
    """
    One input line after parsing.
    - kind: empty | value | assignment | function
    - name: assigned name (`y'` for fields), None for bare/empty expressions
    - params: bound parameters of a function assignment
    - body: sympy tree of the evaluated side
    """
    index: int
    source: str
    kind: ExpressionKind
    name: Optional[str] = None
    params: Tuple[str, ...] = ()
    body: Optional[sympy.Expr] = None

    def symbols(self) -> List[str]:
        """
        Traverse the body and collect every symbol reference and every call
        to an undefined function, skipping bound parameters.
        """
        if self.body is None:
            return []
        seen: List[str] = []
        for node in sympy.preorder_traversal(self.body):
            if isinstance(node, sympy.Symbol):
                name = node.name
            elif isinstance(node, AppliedUndef):
                name = node.func.__name__
            else:
                continue
            name = _to_external(name)
            if name in self.params or name in seen:
                continue
            seen.append(name)
        return seen

    @property
    def binding(self) -> Optional[str]:
        # Name under which the value becomes visible to other expressions
        if self.kind not in ("assignment", "function"):
            return None
        if self.name in CONTROLLED_VARIABLES or self.name == DERIVATIVE:
            return None
        return self.name

    def initial_metadata(self) -> Metadata:
        if self.kind == "empty" or self.kind == "function":
            return Metadata(type="novisual")
        if self.kind == "assignment":
            if self.name in CONTROLLED_VARIABLES:
                return Metadata(type="curve", dependent_var=self.name)
            if self.name == DERIVATIVE:
                return Metadata(type="field", hot=True, dependent_var=DEPENDENT)
        return Metadata(type="value")

    def compile(self):
        body = compile_tree(self.body)
        if self.kind == "function":
            return CompiledFunction(name=self.name, params=self.params, body=body)
        return body


def parse(text: str, index: int = 0) -> ParsedExpression:
    """
    Parse and classify a single input line.
    Raises SyntaxError (ExpressionSyntaxError or sympy's own) on malformed text.
    """
    raw = text or ""
    if not raw.strip():
        return ParsedExpression(index=index, source=raw, kind="empty")

    s = normalize_source(raw)
    parts = _EQUALS.split(s)
    if len(parts) == 1:
        return ParsedExpression(index=index, source=raw, kind="value", body=parse_body(s))
    if len(parts) > 2:
        raise ExpressionSyntaxError(f"Chained assignment is not supported: {raw!r}")

    lhs, rhs = parts
    m = _FUNCTION_HEAD.match(lhs)
    if m:
        name = m.group(1)
        params = tuple(p.strip() for p in (m.group(2) or "").split(",") if p.strip())
        return ParsedExpression(
            index=index, source=raw, kind="function",
            name=name, params=params, body=parse_body(rhs, params),
        )
    m = _NAME_HEAD.match(lhs)
    if m:
        return ParsedExpression(
            index=index, source=raw, kind="assignment",
            name=_to_external(m.group(1)), body=parse_body(rhs),
        )
    raise ExpressionSyntaxError(f"Left side of an assignment must be a name or a function head: {raw!r}")


def preprocess(inputs: List[str]) -> List[ParsedExpression]:
    # Index i always refers to inputs[i], blank lines included
    return [parse(text, i) for i, text in enumerate(inputs)]
