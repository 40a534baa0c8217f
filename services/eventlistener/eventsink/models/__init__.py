"""Catalog and wire models for the eventsink EventListener service."""

from __future__ import annotations

from eventsink.models.interceptor import (
    Code,
    InterceptorRequest,
    InterceptorResponse,
    InterceptorSpec,
    SecretRef,
    Status,
    TriggerContext,
)
from eventsink.models.listener import EventListener, EventListenerTrigger, TriggerGroup
from eventsink.models.trigger import (
    Concurrency,
    Param,
    ParamSpec,
    Trigger,
    TriggerBinding,
    TriggerSpecBinding,
    TriggerSpecTemplate,
    TriggerTemplate,
)

__all__ = [
    'Code',
    'Concurrency',
    'EventListener',
    'EventListenerTrigger',
    'InterceptorRequest',
    'InterceptorResponse',
    'InterceptorSpec',
    'Param',
    'ParamSpec',
    'SecretRef',
    'Status',
    'Trigger',
    'TriggerBinding',
    'TriggerGroup',
    'TriggerContext',
    'TriggerSpecBinding',
    'TriggerSpecTemplate',
    'TriggerTemplate',
]
