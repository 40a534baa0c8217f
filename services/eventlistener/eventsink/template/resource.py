"""
Trigger resolution and resource rendering.

Resolution dereferences a trigger's bindings and template through getter
functions, so the same code works against a static catalog, a live API or a
cache. Rendering is textual: ``$(params.<name>)`` (or ``$(tt.params.<name>)``)
placeholders are replaced in the raw JSON text of each resource template,
then every ``$(uid)`` is replaced with one identifier shared by all the
templates of the invocation.

Substitution contract:

- A placeholder inside a JSON string literal receives the value escaped for
  that string. Values that are already valid JSON string content (for
  example text extracted from the event body) are inserted unchanged.
- A placeholder outside any string literal receives the raw value, which
  lets callers splice numbers, booleans, objects or arrays into a document.
"""

from __future__ import annotations

import json
import logging
import random
import re
import string
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from eventsink.exceptions import (
    BindingError,
    DuplicateParamError,
    TemplateNotFoundError,
)
from eventsink.models.interceptor import TriggerContext
from eventsink.models.trigger import (
    CLUSTER_BINDING_KIND,
    Param,
    Trigger,
    TriggerBinding,
    TriggerSpecBinding,
    TriggerTemplate,
)
from eventsink.template.event import apply_event_values_to_params, new_event

logger = logging.getLogger(__name__)

GetBinding = Callable[[str], TriggerBinding]
GetClusterBinding = Callable[[str], TriggerBinding]
GetTemplate = Callable[[str], TriggerTemplate]

UID_PLACEHOLDER = '$(uid)'
UID_LENGTH = 5
# Same alphabet as generated object names: no vowels, no confusable digits
_UID_ALPHABET = ''.join(c for c in string.ascii_lowercase if c not in 'aeiouy') + '2456789'

PARAM_PATTERN = re.compile(r'\$\((?:tt\.)?params\.([^)]+)\)')


@dataclass
class ResolvedTrigger:
    """A trigger with its bindings and template dereferenced."""

    template: TriggerTemplate
    binding_params: list[Param] = field(default_factory=list)


def new_uid() -> str:
    """Random suffix used for $(uid) substitution."""
    return ''.join(random.choices(_UID_ALPHABET, k=UID_LENGTH))


def resolve_trigger(
    trigger: Trigger,
    get_binding: GetBinding,
    get_cluster_binding: GetClusterBinding,
    get_template: GetTemplate,
) -> ResolvedTrigger:
    """Dereference a trigger's bindings and template.

    Args:
        trigger: Trigger to resolve.
        get_binding: Looks up a namespaced binding by name.
        get_cluster_binding: Looks up a cluster binding by name.
        get_template: Looks up a template by name.

    Returns:
        ResolvedTrigger with merged binding params.

    Raises:
        BindingError: A binding reference cannot be dereferenced.
        DuplicateParamError: Two bindings supply the same param name.
        TemplateNotFoundError: The template reference cannot be dereferenced.
    """
    binding_params = resolve_bindings_to_params(trigger.bindings, get_binding, get_cluster_binding)

    if trigger.template.spec is not None:
        template = trigger.template.spec
    elif trigger.template.ref:
        try:
            template = get_template(trigger.template.ref)
        except LookupError as e:
            raise TemplateNotFoundError(
                f'error getting TriggerTemplate {trigger.template.ref}: {e}'
            ) from e
    else:
        raise TemplateNotFoundError(f'trigger {trigger.name} has no template')

    return ResolvedTrigger(template=template, binding_params=binding_params)


def resolve_bindings_to_params(
    bindings: list[TriggerSpecBinding],
    get_binding: GetBinding,
    get_cluster_binding: GetClusterBinding,
) -> list[Param]:
    """Collect the params of every binding, in declaration order.

    Each binding is one source. A param name supplied by two different
    sources is an error rather than an override.
    """
    sources: list[list[Param]] = []
    for binding in bindings:
        if binding.is_inline:
            sources.append([Param(name=binding.name, value=binding.value or '')])
            continue

        getter = get_cluster_binding if binding.kind == CLUSTER_BINDING_KIND else get_binding
        try:
            resolved = getter(binding.ref)
        except LookupError as e:
            raise BindingError(f'error getting {binding.kind} {binding.ref}: {e}') from e
        sources.append(list(resolved.params))

    return merge_binding_params(sources)


def merge_binding_params(sources: list[list[Param]]) -> list[Param]:
    """Concatenate param lists, failing on a name repeated across lists."""
    merged: list[Param] = []
    seen: set[str] = set()
    for params in sources:
        for param in params:
            if param.name in seen:
                raise DuplicateParamError(param.name)
            seen.add(param.name)
            merged.append(param)
    return merged


def resolve_params(
    resolved: ResolvedTrigger,
    body: bytes | str,
    header: dict[str, list[str]],
    extensions: Optional[dict[str, Any]] = None,
    context: Optional[TriggerContext] = None,
) -> list[Param]:
    """Evaluate binding params against the event and merge template defaults.

    Raises:
        ResolutionError: The body is not JSON or an expression cannot be resolved.
    """
    event = new_event(body, header, extensions, context)
    return apply_event_values_to_params(resolved.binding_params, event, resolved.template.params)


def resolve_resources(template: TriggerTemplate, params: list[Param]) -> list[str]:
    """Render every resource template of a trigger invocation.

    One UID is generated per call and shared by every template, so sibling
    resources can reference each other by name.
    """
    uid = new_uid()
    resources = []
    for rt in template.resource_templates:
        rendered = apply_params_to_resource_template(params, rt)
        resources.append(apply_uid_to_resource_template(rendered, uid))
    return resources


def apply_params_to_resource_template(params: list[Param], rt: str) -> str:
    """Substitute param placeholders into raw resource template text.

    Placeholders naming an unknown param are left untouched.
    """
    values = {p.name: p.value for p in params}
    out = []
    pos = 0
    in_string = False
    escaped = False

    for match in PARAM_PATTERN.finditer(rt):
        # Track whether the placeholder sits inside a JSON string literal
        for ch in rt[pos:match.start()]:
            if escaped:
                escaped = False
            elif ch == '\\' and in_string:
                escaped = True
            elif ch == '"':
                in_string = not in_string

        out.append(rt[pos:match.start()])
        name = match.group(1)
        if name in values:
            value = values[name]
            out.append(escape_string_value(value) if in_string else value)
        else:
            out.append(match.group(0))
        pos = match.end()

    out.append(rt[pos:])
    return ''.join(out)


def apply_uid_to_resource_template(rt: str, uid: str) -> str:
    return rt.replace(UID_PLACEHOLDER, uid)


def escape_string_value(value: str) -> str:
    """Make value safe to place between the quotes of a JSON string.

    Text that already is valid JSON string content is returned as-is.
    """
    try:
        json.loads(f'"{value}"')
    except ValueError:
        return json.dumps(value, ensure_ascii=False)[1:-1]
    return value
