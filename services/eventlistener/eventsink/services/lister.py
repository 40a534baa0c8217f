"""
Catalog lister - read-only access to EventListeners, Triggers, Bindings,
Templates and Interceptors.

Objects are loaded from a YAML catalog::

    eventListeners:
      - name: github-listener
        namespace: ci
        spec:
          triggers:
            - triggerRef: on-push
          labelSelector:
            matchLabels: {team: platform}
          namespaceSelector:
            matchNames: ["*"]
    triggers:
      - name: on-push
        namespace: ci
        labels: {team: platform}
        spec:
          interceptors: [{github: {eventTypes: [push]}}]
          bindings: [{ref: push-binding}]
          template: {ref: build-template}
    triggerBindings:
      - {name: push-binding, namespace: ci, params: [{name: sha, value: $(body.after)}]}
    clusterTriggerBindings: []
    triggerTemplates:
      - name: build-template
        namespace: ci
        params: [{name: sha}]
        resourcetemplates: [{kind: Build, sha: $(params.sha)}]
    interceptors:
      - {name: slack, url: http://slack-interceptor.ci.svc/}

The lister is owned by the application and injected where needed. reload()
parses the catalog and swaps the whole snapshot at once, so getters never
observe a half-loaded catalog.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import yaml

from eventsink.exceptions import ListerError, ResolutionError
from eventsink.models.listener import EventListener
from eventsink.models.trigger import (
    CLUSTER_BINDING_KIND,
    NAMESPACED_BINDING_KIND,
    Trigger,
    TriggerBinding,
    TriggerTemplate,
)

logger = logging.getLogger(__name__)

ALL_NAMESPACES = "*"

NamespacedKey = tuple[str, str]


@dataclass
class Catalog:
    """One consistent snapshot of the configuration objects."""

    event_listeners: dict[NamespacedKey, EventListener] = field(default_factory=dict)
    triggers: dict[NamespacedKey, Trigger] = field(default_factory=dict)
    bindings: dict[NamespacedKey, TriggerBinding] = field(default_factory=dict)
    cluster_bindings: dict[str, TriggerBinding] = field(default_factory=dict)
    templates: dict[NamespacedKey, TriggerTemplate] = field(default_factory=dict)
    interceptors: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "Catalog":
        """Build a catalog from decoded YAML.

        Raises:
            ListerError: If an object is malformed.
        """
        data = data or {}
        catalog = cls()
        try:
            for item in data.get("eventListeners") or []:
                el = EventListener.from_dict(item)
                catalog.event_listeners[(el.namespace, el.name)] = el
            for item in data.get("triggers") or []:
                trigger = Trigger.from_dict(item, namespace=item.get("namespace", "default"))
                catalog.triggers[(trigger.namespace, trigger.name)] = trigger
            for item in data.get("triggerBindings") or []:
                binding = TriggerBinding.from_dict(item, NAMESPACED_BINDING_KIND)
                catalog.bindings[(binding.namespace or "default", binding.name)] = binding
            for item in data.get("clusterTriggerBindings") or []:
                binding = TriggerBinding.from_dict(item, CLUSTER_BINDING_KIND)
                catalog.cluster_bindings[binding.name] = binding
            for item in data.get("triggerTemplates") or []:
                template = TriggerTemplate.from_dict(item)
                catalog.templates[(template.namespace or "default", template.name)] = template
            for item in data.get("interceptors") or []:
                catalog.interceptors[item["name"]] = item["url"]
        except (KeyError, TypeError, ValueError, AttributeError, ResolutionError) as e:
            raise ListerError(f"invalid catalog: {e}") from e
        return catalog


class Lister:
    """Getter functions over the current catalog snapshot."""

    def __init__(self, path: Optional[str] = None, data: Optional[dict[str, Any]] = None):
        """
        Initialize the lister.

        Args:
            path: YAML catalog file; reload() re-reads it
            data: Already decoded catalog, used instead of a file
        """
        self.path = path
        self._catalog = Catalog.from_dict(data) if data is not None else Catalog()

    def reload(self) -> None:
        """Re-read the catalog file and replace the snapshot.

        Raises:
            ListerError: If the file cannot be read or parsed.
        """
        if not self.path:
            return
        if not os.path.exists(self.path):
            raise ListerError(f"catalog {self.path} does not exist")
        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ListerError(f"failed to read catalog {self.path}: {e}") from e

        self._catalog = Catalog.from_dict(data)
        logger.info(
            f"Loaded catalog {self.path}: "
            f"{len(self._catalog.event_listeners)} listeners, "
            f"{len(self._catalog.triggers)} triggers"
        )

    def get_event_listener(self, namespace: str, name: str) -> EventListener:
        try:
            return self._catalog.event_listeners[(namespace, name)]
        except KeyError:
            raise ListerError(f"EventListener {namespace}/{name} not found") from None

    def get_trigger(self, namespace: str, name: str) -> Trigger:
        try:
            return self._catalog.triggers[(namespace, name)]
        except KeyError:
            raise ListerError(f"Trigger {namespace}/{name} not found") from None

    def get_binding(self, namespace: str) -> Callable[[str], TriggerBinding]:
        """Getter of namespaced bindings in one namespace."""
        catalog = self._catalog

        def getter(name: str) -> TriggerBinding:
            try:
                return catalog.bindings[(namespace, name)]
            except KeyError:
                raise ListerError(f"TriggerBinding {namespace}/{name} not found") from None

        return getter

    def get_cluster_binding(self, name: str) -> TriggerBinding:
        try:
            return self._catalog.cluster_bindings[name]
        except KeyError:
            raise ListerError(f"ClusterTriggerBinding {name} not found") from None

    def get_template(self, namespace: str) -> Callable[[str], TriggerTemplate]:
        """Getter of templates in one namespace."""
        catalog = self._catalog

        def getter(name: str) -> TriggerTemplate:
            try:
                return catalog.templates[(namespace, name)]
            except KeyError:
                raise ListerError(f"TriggerTemplate {namespace}/{name} not found") from None

        return getter

    def get_interceptor_url(self, name: str) -> str:
        try:
            return self._catalog.interceptors[name]
        except KeyError:
            raise ListerError(f"Interceptor {name} not found") from None

    def triggers_for(self, listener: EventListener) -> list[Trigger]:
        """
        Triggers served by an EventListener, in a stable order.

        Explicit entries come first (a missing triggerRef is logged and
        skipped), then triggers picked by the listener's selectors.
        """
        selected: dict[str, Trigger] = {}

        for entry in listener.triggers:
            if entry.trigger is not None:
                selected.setdefault(entry.trigger.trigger_id, entry.trigger)
                continue
            try:
                trigger = self.get_trigger(listener.namespace, entry.trigger_ref)
            except ListerError as e:
                logger.error(f"Skipping trigger of {listener.namespace}/{listener.name}: {e}")
                continue
            selected.setdefault(trigger.trigger_id, trigger)

        for trigger in self.select_triggers(
            listener.namespace_selector, listener.label_selector, listener.namespace
        ):
            selected.setdefault(trigger.trigger_id, trigger)

        return list(selected.values())

    def select_triggers(
        self,
        namespaces: list[str],
        label_selector: Optional[dict[str, str]],
        default_namespace: str,
    ) -> list[Trigger]:
        """
        Triggers picked by a namespace selector and a label selector.

        Args:
            namespaces: Namespace names to search; ``["*"]`` means every namespace
            label_selector: Labels a trigger must carry; None matches every trigger
            default_namespace: Searched when namespaces is empty and a label
                selector is set

        Returns:
            list: Matching triggers ordered by namespace and name. Empty when
            neither selector is set.
        """
        if not namespaces:
            if label_selector is None:
                return []
            namespaces = [default_namespace]
        match_all = ALL_NAMESPACES in namespaces
        labels = label_selector or {}

        return [
            trigger
            for (namespace, _), trigger in sorted(self._catalog.triggers.items())
            if (match_all or namespace in namespaces)
            and all(trigger.labels.get(k) == v for k, v in labels.items())
        ]
