"""
Policy interceptor: JMESPath filter and overlays over the event.

Queries run against one input document::

    {"body": {...}, "header": {"X-Github-Event": "push"}, "extensions": {...}}

``filter`` must evaluate to true for the trigger to continue. Each overlay
query produces a result set of rows (a list of objects; a single object is
one row). For every binding name the values of all rows are collected into
an ordered array, or only the first value when the overlay is ``single``.
An empty result set produces no extension.

Example::

    policy:
      filter: "header.\\"X-Github-Event\\" == 'push'"
      overlays:
        - extension: committers
          query: "body.commits[].{id: id, author: author.name}"
          bindings: [id, author]
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import jmespath
from jmespath.exceptions import JMESPathError

from eventsink.interceptors import DispatchContext, Interceptor, canonical, fail, failf, parse_json_body, proceed
from eventsink.models.interceptor import Code, InterceptorRequest, InterceptorResponse, Overlay

logger = logging.getLogger(__name__)


class PolicyInterceptor(Interceptor):
    name = 'policy'

    def process(self, ctx: DispatchContext, request: InterceptorRequest) -> InterceptorResponse:
        body, failure = parse_json_body(request)
        if failure is not None:
            return failure

        params = request.interceptor_params
        try:
            overlays = [Overlay.from_dict(o) for o in params.get('overlays') or []]
        except (KeyError, TypeError, AttributeError) as e:
            return failf(Code.INVALID_ARGUMENT, 'failed to parse interceptor params: %s', e)

        document = build_input(body, request.header, request.extensions)

        expression = params.get('filter') or ''
        if expression:
            try:
                matched = evaluate_filter(expression, document)
            except JMESPathError as e:
                return failf(Code.ABORTED, 'failed to evaluate filter %s: %s', expression, e)
            except TypeError as e:
                return fail(Code.ABORTED, str(e))
            if not matched:
                return failf(Code.FAILED_PRECONDITION, '%s unmatched', expression)

        extensions: dict[str, Any] = {}
        for overlay in overlays:
            try:
                value = evaluate_overlay(overlay, document)
            except JMESPathError as e:
                return failf(
                    Code.ABORTED, 'unable to evaluate extension for %s: %s', overlay.extension, e
                )
            if value is not None:
                extensions[overlay.extension] = value

        return proceed(extensions or None)


def build_input(body: dict[str, Any], header: dict[str, list[str]], extensions: dict[str, Any]) -> dict[str, Any]:
    return {
        'body': body,
        'header': {k: ','.join(v) for k, v in canonical(header).items()},
        'extensions': dict(extensions or {}),
    }


def evaluate_filter(expression: str, document: dict[str, Any]) -> bool:
    """Evaluate a filter expression.

    A null result counts as unmatched.

    Raises:
        JMESPathError: The expression does not compile or fails to evaluate.
        TypeError: The expression evaluates to something other than a boolean.
    """
    result = jmespath.compile(expression).search(document)
    if result is None:
        return False
    if not isinstance(result, bool):
        raise TypeError(f'filter {expression} evaluated to {type(result).__name__}, expected bool')
    return result


def evaluate_overlay(overlay: Overlay, document: dict[str, Any]) -> Optional[Any]:
    """Evaluate one overlay query into its extension value.

    Returns:
        None when the result set is empty, otherwise a dict of binding name
        to values (or, without bindings, the rows themselves).
    """
    result = jmespath.compile(overlay.query).search(document)
    if result is None:
        return None
    rows = result if isinstance(result, list) else [result]
    if not rows:
        return None

    if not overlay.bindings:
        return rows[0] if overlay.single else rows

    bound = {}
    for name in overlay.bindings:
        values = [row.get(name) if isinstance(row, dict) else None for row in rows]
        bound[name] = values[0] if overlay.single else values
    return bound
