"""Template engine: JSONPath extraction, param resolution and resource rendering."""

from __future__ import annotations

from eventsink.template.event import (
    Event,
    apply_body_to_params,
    apply_event_values_to_params,
    apply_header_to_params,
    merge_in_default_params,
    new_event,
)
from eventsink.template.jsonpath import parse_json_path
from eventsink.template.resource import (
    ResolvedTrigger,
    apply_params_to_resource_template,
    apply_uid_to_resource_template,
    resolve_params,
    resolve_resources,
    resolve_trigger,
)

__all__ = [
    'Event',
    'ResolvedTrigger',
    'apply_body_to_params',
    'apply_event_values_to_params',
    'apply_header_to_params',
    'apply_params_to_resource_template',
    'apply_uid_to_resource_template',
    'merge_in_default_params',
    'new_event',
    'parse_json_path',
    'resolve_params',
    'resolve_resources',
    'resolve_trigger',
]
