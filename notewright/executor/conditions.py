"""Condition expressions for condition steps.

Expressions are parsed with :mod:`ast` and walked against a closed set of
node types: literals, list literals, variable names, comparisons and boolean
operators. Nothing is ever handed to ``eval``.
"""

import ast
import operator
import re
from typing import Any, Dict, Mapping

import structlog

from ..templates.renderer import format_value
from .errors import ConditionError

logger = structlog.get_logger()

COMPARISONS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda x, y: x in y,
    ast.NotIn: lambda x, y: x not in y,
}

UNARY_OPS = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

LITERAL_NAMES = {
    "true": True,
    "false": False,
    "null": None,
    "True": True,
    "False": False,
    "None": None,
}

STRING_LITERAL = re.compile(r'''("(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*')''')
PLACEHOLDER = re.compile(r'\{\{\s*(\w+)\s*\}\}')

# JavaScript spellings accepted for compatibility with stored workflows.
JS_OPERATORS = [
    (re.compile(r'==='), '=='),
    (re.compile(r'!=='), '!='),
    (re.compile(r'&&'), ' and '),
    (re.compile(r'\|\|'), ' or '),
    (re.compile(r'!(?!=)'), ' not '),
]


class ConditionEvaluator:
    """Evaluates whitelisted boolean expressions over a variable environment."""

    def __init__(self):
        self.logger = logger.bind(component="condition_evaluator")

    def evaluate(self, expression: str, variables: Mapping[str, Any]) -> bool:
        """Evaluate ``expression`` to a boolean."""
        bindings: Dict[str, Any] = {}
        source = self._prepare(expression, variables, bindings).strip()

        try:
            tree = ast.parse(source, mode='eval')
        except SyntaxError as e:
            raise ConditionError(expression, f"syntax error: {e.msg}")

        try:
            result = self._eval(tree.body, expression, variables, bindings)
        except TypeError as e:
            raise ConditionError(expression, str(e))

        self.logger.debug("Condition evaluated", expression=expression, result=bool(result))
        return bool(result)

    def _prepare(self, expression: str, variables: Mapping[str, Any], bindings: Dict[str, Any]) -> str:
        """Bind placeholders and normalize operators outside string literals."""
        def lookup(name: str) -> Any:
            if name not in variables:
                raise ConditionError(expression, f"unresolved placeholder: {name}")
            return variables[name]

        def bind(value: Any) -> str:
            key = f"_ph{len(bindings)}"
            bindings[key] = value
            return f" {key} "

        parts = []
        for index, segment in enumerate(STRING_LITERAL.split(expression)):
            # split() with one capture group alternates code and string literals
            if index % 2 == 1:
                if PLACEHOLDER.search(segment):
                    # quoted placeholders compare by their text form
                    text = self._literal_text(segment, expression)
                    segment = bind(PLACEHOLDER.sub(lambda m: format_value(lookup(m.group(1))), text))
                parts.append(segment)
                continue
            segment = PLACEHOLDER.sub(lambda m: bind(lookup(m.group(1))), segment)
            for pattern, replacement in JS_OPERATORS:
                segment = pattern.sub(replacement, segment)
            parts.append(segment)
        return "".join(parts)

    @staticmethod
    def _literal_text(segment: str, expression: str) -> str:
        try:
            return ast.literal_eval(segment)
        except (SyntaxError, ValueError):
            raise ConditionError(expression, f"invalid string literal: {segment}")

    def _eval(self, node: ast.AST, expression: str, variables: Mapping[str, Any], bindings: Dict[str, Any]) -> Any:
        if isinstance(node, ast.Constant):
            if node.value is None or isinstance(node.value, (str, int, float, bool)):
                return node.value
            raise ConditionError(expression, f"unsupported literal: {node.value!r}")

        if isinstance(node, ast.Name):
            if node.id in bindings:
                return bindings[node.id]
            if node.id in LITERAL_NAMES:
                return LITERAL_NAMES[node.id]
            if node.id in variables:
                return variables[node.id]
            raise ConditionError(expression, f"unknown variable: {node.id}")

        if isinstance(node, ast.BoolOp):
            is_and = isinstance(node.op, ast.And)
            result: Any = is_and
            for value in node.values:
                result = self._eval(value, expression, variables, bindings)
                if is_and and not result:
                    return result
                if not is_and and result:
                    return result
            return result

        if isinstance(node, ast.UnaryOp):
            op = UNARY_OPS.get(type(node.op))
            if op is None:
                raise ConditionError(expression, f"unsupported operator: {type(node.op).__name__}")
            return op(self._eval(node.operand, expression, variables, bindings))

        if isinstance(node, ast.Compare):
            left = self._eval(node.left, expression, variables, bindings)
            for op_node, comparator in zip(node.ops, node.comparators):
                op = COMPARISONS.get(type(op_node))
                if op is None:
                    raise ConditionError(expression, f"unsupported operator: {type(op_node).__name__}")
                right = self._eval(comparator, expression, variables, bindings)
                if not op(left, right):
                    return False
                left = right
            return True

        if isinstance(node, (ast.List, ast.Tuple)):
            return [self._eval(item, expression, variables, bindings) for item in node.elts]

        raise ConditionError(expression, f"unsupported element: {type(node).__name__}")
