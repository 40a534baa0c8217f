"""
JSONPath extraction for $(...) expressions.

Expressions use a relaxed JSONPath syntax. Each of these forms is accepted
and normalized to the strict ``$.body.a.b`` form before evaluation:

- ``body.a.b``
- ``.body.a.b``
- ``{body.a.b}``
- ``{.body.a.b}``

Results are printed as text suitable for splicing into JSON documents:
strings lose their surrounding quotes but keep JSON escaping, every other
value (numbers, booleans, null, objects, arrays) is compact JSON, and more
than one match yields a JSON array.
"""

from __future__ import annotations

import json
import re
from typing import Any

from jsonpath_ng.exceptions import JSONPathError
from jsonpath_ng.ext import parse as jsonpath_parse

from eventsink.exceptions import ExpressionNotFoundError

# Captures strings that are enclosed in $()
EXPRESSION_PATTERN = re.compile(r'\$\(?([^\)]+)\)')

# Relaxed JSONPath: with or without the enclosing {} and the leading .
RELAXED_PATH_PATTERN = re.compile(r'^\{\.?([^{}]+)\}$|^\.?([^{}]+)$')

_HEADER_PREFIX = 'header.'

# Header names quoted in the path; unquoted, '-' lexes as an operator
_HEADER_NAME_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')


def relaxed_json_path_expression(path: str) -> str:
    """Normalize a relaxed JSONPath into a strict one.

    Args:
        path: Path without the $() wrapper, e.g. ``body.a.b``.

    Returns:
        Strict JSONPath string, e.g. ``$.body.a.b``. An empty path
        selects the whole document (``$``).

    Raises:
        ValueError: If the path is not in one of the accepted forms.
    """
    if not path:
        return '$'

    match = RELAXED_PATH_PATTERN.match(path)
    if match is None:
        raise ValueError(
            "unexpected path string, expected a 'name1.name2' or '.name1.name2' "
            "or '{name1.name2}' or '{.name1.name2}'"
        )
    field_spec = match.group(1) or match.group(2)
    if field_spec.startswith('['):
        return f'${field_spec}'
    return f'$.{field_spec}'


def json_path_expression(expr: str) -> str:
    """Unwrap a $() expression and return its strict JSONPath form.

    Raises:
        ValueError: If expr is not wrapped in $().
    """
    if not (expr.startswith('$(') and expr.endswith(')')):
        raise ValueError(f'expression not wrapped in $(): {expr}')
    return relaxed_json_path_expression(expr[2:-1])


def parse_json_path(data: Any, expr: str) -> str:
    """Extract the value selected by a $() expression from data.

    Args:
        data: Decoded JSON document (dicts, lists and scalars).
        expr: Expression such as ``$(body.a.b)``.

    Returns:
        Extracted value printed as embeddable JSON text.

    Raises:
        ValueError: If the expression cannot be parsed.
        ExpressionNotFoundError: If the path selects nothing.
    """
    path = json_path_expression(expr)
    try:
        compiled = jsonpath_parse(path)
    except JSONPathError as e:
        raise ValueError(f'invalid JSONPath {path}: {e}') from e

    matches = compiled.find(data)
    if not matches:
        raise ExpressionNotFoundError(f'{expr} is not found')

    return format_results([m.value for m in matches])


def format_results(values: list[Any]) -> str:
    """Print JSONPath results as JSON text.

    A single string result is JSON-escaped without its surrounding quotes
    so callers decide whether to quote it. Several results become an array.
    """
    if len(values) == 1:
        value = values[0]
        if value is None:
            return 'null'
        if isinstance(value, str):
            return _dumps(value)[1:-1]
        return _dumps(value)
    return _dumps(values)


def find_expressions(text: str) -> tuple[list[str], list[str]]:
    """Find every $() expression in text, honouring nested parentheses.

    Header expressions have their header name canonicalized and quoted in
    the first list; the second list keeps the substrings exactly as they appear so
    they can be replaced in the original text.

    Returns:
        Tuple of (normalized expressions, original substrings).
    """
    results: list[str] = []
    originals: list[str] = []

    if '$(' not in text:
        return results, originals

    for candidate in text.split('$(')[1:]:
        depth = 0
        for i, ch in enumerate(candidate):
            if ch == '(':
                depth += 1
            elif ch == ')':
                depth -= 1
                if depth < 0:
                    raw = candidate[:i]
                    originals.append(f'$({raw})')
                    if raw.startswith(_HEADER_PREFIX):
                        raw = _header_path(raw[len(_HEADER_PREFIX):])
                    results.append(f'$({raw})')
                    break
    return results, originals


def canonical_header_key(key: str) -> str:
    """Canonical MIME form of a header name: ``x-github-event`` -> ``X-Github-Event``.

    Keys containing characters that are not valid in a header token are
    returned unchanged.
    """
    if not key or any(ch in key for ch in ' \t:.[]{}()'):
        return key
    return '-'.join(part[:1].upper() + part[1:].lower() for part in key.split('-'))


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(',', ':'), ensure_ascii=False)


def _header_path(name: str) -> str:
    """Path of a header expression: ``x-github-event`` -> ``header.'X-Github-Event'``."""
    name = canonical_header_key(name)
    if _HEADER_NAME_PATTERN.match(name):
        return f"{_HEADER_PREFIX}'{name}'"
    return _HEADER_PREFIX + name
