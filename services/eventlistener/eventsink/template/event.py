"""
Event values and parameter resolution.

An inbound event is exposed to binding expressions as one JSON document::

    {
        "body": <decoded JSON body>,
        "header": {"X-Github-Event": "push", ...},
        "extensions": {<interceptor extensions>},
        "context": {"event_id": ..., "event_url": ..., "trigger_id": ...}
    }

Binding values may reference it with $(body.<path>), $(header.<name>),
$(extensions.<path>) or $(context.<field>). Any other $() expression, such as
$(uid) or $(params.x), is left in place for the rendering stage.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from eventsink.exceptions import ExpressionNotFoundError, ResolutionError
from eventsink.models.interceptor import TriggerContext
from eventsink.models.trigger import Param, ParamSpec
from eventsink.template.jsonpath import canonical_header_key, find_expressions, parse_json_path

logger = logging.getLogger(__name__)

EVENT_ROOTS = ('body', 'header', 'extensions', 'context')


@dataclass
class Event:
    """The event document binding expressions are evaluated against."""

    body: Any = None
    header: dict[str, str] = field(default_factory=dict)
    extensions: dict[str, Any] = field(default_factory=dict)
    context: dict[str, str] = field(default_factory=dict)

    def to_document(self) -> dict[str, Any]:
        return {
            'body': self.body,
            'header': self.header,
            'extensions': self.extensions,
            'context': self.context,
        }


def new_event(
    body: bytes | str,
    headers: dict[str, list[str]],
    extensions: Optional[dict[str, Any]] = None,
    context: Optional[TriggerContext] = None,
) -> Event:
    """Build an Event from a raw body and request headers.

    Args:
        body: Raw request body; empty means no body.
        headers: Header name -> list of values.
        extensions: Interceptor extensions accumulated so far.
        context: Trigger correlation context.

    Returns:
        Event with the body decoded and multi-valued headers joined by ','.

    Raises:
        ResolutionError: If a non-empty body is not valid JSON.
    """
    data = None
    if body:
        try:
            data = json.loads(body)
        except ValueError as e:
            raise ResolutionError(f'failed to unmarshal request body: {e}') from e

    joined = {}
    for key, values in (headers or {}).items():
        if isinstance(values, str):
            values = [values]
        joined[canonical_header_key(key)] = ','.join(values)

    ctx = context or TriggerContext()
    return Event(
        body=data,
        header=joined,
        extensions=dict(extensions or {}),
        context={
            'event_id': ctx.event_id,
            'event_url': ctx.event_url,
            'trigger_id': ctx.trigger_id,
        },
    )


def resolve_expression_value(value: str, event: Event, roots: Iterable[str] = EVENT_ROOTS) -> str:
    """Replace every event expression in value with its extracted text.

    Args:
        value: Binding value, literal or containing $() expressions.
        event: Event to evaluate against.
        roots: Which event roots to resolve; other expressions are kept.

    Returns:
        value with all matching expressions substituted.

    Raises:
        ExpressionNotFoundError: If an expression selects nothing.
        ResolutionError: If an expression is malformed.
    """
    document = event.to_document()
    expressions, originals = find_expressions(value)
    for expr, original in zip(expressions, originals):
        if _root_of(expr) not in roots:
            continue
        try:
            extracted = parse_json_path(document, expr)
        except ValueError as e:
            raise ResolutionError(f'failed to parse expression {original}: {e}') from e
        value = value.replace(original, extracted)
    return value


def merge_in_default_params(params: list[Param], param_specs: list[ParamSpec]) -> list[Param]:
    """Add every declared default not overridden by a same-named param."""
    all_params: dict[str, str] = {}
    for spec in param_specs:
        if spec.default is not None:
            all_params[spec.name] = spec.default
    for param in params:
        all_params[param.name] = param.value
    return [Param(name=k, value=v) for k, v in all_params.items()]


def apply_event_values_to_params(
    params: list[Param],
    event: Event,
    defaults: Optional[list[ParamSpec]] = None,
) -> list[Param]:
    """Resolve every binding param against the event and merge in defaults.

    Declared defaults are present unless a binding param of the same name
    overrides them. When a binding expression cannot be resolved and the
    template declares a default for that param, the default is used.

    Raises:
        ExpressionNotFoundError: If an expression has no value and no default.
        ResolutionError: If an expression is malformed.
    """
    defaults = defaults or []
    has_default = {spec.name for spec in defaults if spec.default is not None}

    resolved: list[Param] = []
    for param in params:
        try:
            result = resolve_expression_value(param.value, event)
        except ResolutionError as e:
            if param.name not in has_default:
                raise ExpressionNotFoundError(
                    f'failed to replace JSONPath value for param {param.name}: {param.value}: {e}'
                ) from e
            logger.debug(f'Using default for param {param.name}: {e}')
            continue
        resolved.append(Param(name=param.name, value=result))

    return merge_in_default_params(resolved, defaults)


def apply_body_to_params(params: list[Param], body: bytes | str) -> list[Param]:
    """Replace $(body...) expressions in params with values from body."""
    event = new_event(body, {})
    return [Param(p.name, resolve_expression_value(p.value, event, ('body',))) for p in params]


def apply_header_to_params(params: list[Param], headers: dict[str, list[str]]) -> list[Param]:
    """Replace $(header...) expressions in params with values from headers."""
    event = new_event(b'', headers)
    return [Param(p.name, resolve_expression_value(p.value, event, ('header',))) for p in params]


def _root_of(expr: str) -> str:
    """Root segment of a $() expression: ``$(body.a)`` -> ``body``."""
    inner = expr[2:-1].lstrip('{').lstrip('.')
    for i, ch in enumerate(inner):
        if ch in '.[}':
            return inner[:i]
    return inner
