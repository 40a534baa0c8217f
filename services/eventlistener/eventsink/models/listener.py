"""EventListener model: the set of triggers one sink serves."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from eventsink.models.interceptor import InterceptorSpec, interceptor_spec_from_dict
from eventsink.models.trigger import Trigger


@dataclass
class EventListenerTrigger:
    """A trigger entry on an EventListener: a reference or an inline trigger."""

    trigger_ref: str = ''
    trigger: Optional[Trigger] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], namespace: str) -> EventListenerTrigger:
        if data.get('triggerRef'):
            return cls(trigger_ref=data['triggerRef'])
        if 'template' not in data:
            raise ValueError('EventListener trigger must set triggerRef or an inline template')
        return cls(trigger=Trigger.from_dict(data, namespace=namespace))


@dataclass
class TriggerGroup:
    """Triggers picked by a selector that share one interceptor chain.

    The group's chain runs once per event; its body, header and extensions
    are handed to every selected trigger.
    """

    name: str
    namespace: str
    interceptors: list[InterceptorSpec] = field(default_factory=list)
    label_selector: Optional[dict[str, str]] = None
    namespace_selector: list[str] = field(default_factory=list)

    @property
    def trigger_id(self) -> str:
        return f'namespaces/{self.namespace}/triggerGroups/{self.name}'

    @classmethod
    def from_dict(cls, data: dict[str, Any], namespace: str) -> TriggerGroup:
        selector = data.get('triggerSelector') or {}
        return cls(
            name=data['name'],
            namespace=namespace,
            interceptors=[interceptor_spec_from_dict(i) for i in data.get('interceptors', [])],
            label_selector=_match_labels(selector.get('labelSelector')),
            namespace_selector=_match_names(selector.get('namespaceSelector')),
        )


@dataclass
class EventListener:
    """Owning object of a sink.

    Triggers are taken from the explicit ``triggers`` list plus every trigger
    picked by the namespace and label selectors. Trigger groups are processed
    separately, each through its own interceptor chain first.
    """

    name: str
    namespace: str
    uid: str = ''
    triggers: list[EventListenerTrigger] = field(default_factory=list)
    trigger_groups: list[TriggerGroup] = field(default_factory=list)
    label_selector: Optional[dict[str, str]] = None
    namespace_selector: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventListener:
        namespace = data.get('namespace', 'default')
        spec = data.get('spec', data)
        return cls(
            name=data['name'],
            namespace=namespace,
            uid=data.get('uid', ''),
            triggers=[EventListenerTrigger.from_dict(t, namespace) for t in spec.get('triggers', [])],
            trigger_groups=[TriggerGroup.from_dict(g, namespace) for g in spec.get('triggerGroups', [])],
            label_selector=_match_labels(spec.get('labelSelector')),
            namespace_selector=_match_names(spec.get('namespaceSelector')),
        )


def _match_labels(selector: Optional[dict[str, Any]]) -> Optional[dict[str, str]]:
    if selector is None:
        return None
    return dict(selector.get('matchLabels') or {})


def _match_names(selector: Optional[dict[str, Any]]) -> list[str]:
    return list((selector or {}).get('matchNames') or [])
