"""
Trigger, binding and template models.

These objects are read from the configuration catalog at dispatch time and
are treated as immutable for the duration of one event:

- TriggerBinding / ClusterTriggerBinding: parameter name -> value expression
- TriggerTemplate: declared ParamSpecs plus raw resource templates
- Trigger: bindings + template + interceptor chain + concurrency policy
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

from eventsink.exceptions import BindingError
from eventsink.models.interceptor import InterceptorSpec, interceptor_spec_from_dict

NAMESPACED_BINDING_KIND = 'TriggerBinding'
CLUSTER_BINDING_KIND = 'ClusterTriggerBinding'
BINDING_KINDS = {NAMESPACED_BINDING_KIND, CLUSTER_BINDING_KIND}

CONCURRENCY_STRATEGIES = {'skip', 'wait'}


@dataclass
class Param:
    """A resolved (or still templated) parameter value."""

    name: str
    value: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Param:
        return cls(name=str(data['name']), value=_as_text(data.get('value', '')))


@dataclass
class ParamSpec:
    """A parameter declaration on a TriggerTemplate."""

    name: str
    default: Optional[str] = None
    description: str = ''

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParamSpec:
        default = data.get('default')
        return cls(
            name=str(data['name']),
            default=_as_text(default) if default is not None else None,
            description=data.get('description', ''),
        )


@dataclass
class TriggerBinding:
    """Namespaced or cluster scoped binding of params to value expressions.

    Param names must be unique within one binding.
    """

    name: str
    params: list[Param] = field(default_factory=list)
    namespace: str = ''
    kind: str = NAMESPACED_BINDING_KIND

    def __post_init__(self) -> None:
        seen = set()
        for param in self.params:
            if param.name in seen:
                raise BindingError(
                    f'{self.kind} {self.name} declares param {param.name} more than once'
                )
            seen.add(param.name)

    @classmethod
    def from_dict(cls, data: dict[str, Any], kind: str = NAMESPACED_BINDING_KIND) -> TriggerBinding:
        return cls(
            name=data['name'],
            namespace=data.get('namespace', ''),
            kind=kind,
            params=[Param.from_dict(p) for p in data.get('params', [])],
        )


@dataclass
class TriggerTemplate:
    """Declared params plus the raw JSON resource templates to render.

    Resource templates are kept as raw JSON text; rendering substitutes
    into the text, never into a parsed structure.
    """

    name: str
    params: list[ParamSpec] = field(default_factory=list)
    resource_templates: list[str] = field(default_factory=list)
    namespace: str = ''

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TriggerTemplate:
        resource_templates = []
        for rt in data.get('resourcetemplates', data.get('resource_templates', [])):
            # Templates may be given as already-serialized JSON text
            if isinstance(rt, str):
                resource_templates.append(rt)
            else:
                resource_templates.append(json.dumps(rt, separators=(',', ':')))

        return cls(
            name=data.get('name', ''),
            namespace=data.get('namespace', ''),
            params=[ParamSpec.from_dict(p) for p in data.get('params', [])],
            resource_templates=resource_templates,
        )


@dataclass
class TriggerSpecBinding:
    """A binding entry on a Trigger: either a reference or an inline pair."""

    ref: str = ''
    kind: str = ''
    name: str = ''
    value: Optional[str] = None

    def __post_init__(self) -> None:
        if self.ref:
            if not self.kind:
                self.kind = NAMESPACED_BINDING_KIND
            if self.kind not in BINDING_KINDS:
                raise BindingError(
                    f'invalid binding kind {self.kind!r} for ref {self.ref}; '
                    f'expected one of {", ".join(sorted(BINDING_KINDS))}'
                )
        elif self.kind:
            raise BindingError(f'inline binding {self.name} must not set a kind')
        elif not self.name or self.value is None:
            raise BindingError('binding must set either ref or both name and value')

    @property
    def is_inline(self) -> bool:
        return not self.ref

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TriggerSpecBinding:
        value = data.get('value')
        return cls(
            ref=data.get('ref', ''),
            kind=data.get('kind', ''),
            name=data.get('name', ''),
            value=_as_text(value) if value is not None else None,
        )


@dataclass
class TriggerSpecTemplate:
    """Template of a Trigger: a reference by name or an inline spec."""

    ref: str = ''
    spec: Optional[TriggerTemplate] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TriggerSpecTemplate:
        spec = data.get('spec')
        return cls(
            ref=data.get('ref', data.get('name', '')),
            spec=TriggerTemplate.from_dict(spec) if spec is not None else None,
        )


@dataclass
class Concurrency:
    """Per-trigger concurrency policy.

    key is a template over $(params.<name>); strategy is 'skip' or 'wait'.
    """

    key: str
    strategy: str = 'skip'
    limit: int = 1

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Concurrency:
        strategy = data.get('strategy', 'skip')
        if strategy not in CONCURRENCY_STRATEGIES:
            raise ValueError(f'unsupported concurrency strategy: {strategy}')
        limit = int(data.get('limit', 1))
        if limit < 1:
            raise ValueError('concurrency limit must be at least 1')
        return cls(key=data['key'], strategy=strategy, limit=limit)


@dataclass
class Trigger:
    """A named rule: interceptors -> bindings -> template."""

    name: str
    namespace: str
    template: TriggerSpecTemplate
    bindings: list[TriggerSpecBinding] = field(default_factory=list)
    interceptors: list[InterceptorSpec] = field(default_factory=list)
    service_account: str = ''
    concurrency: Optional[Concurrency] = None
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def trigger_id(self) -> str:
        return f'namespaces/{self.namespace}/triggers/{self.name}'

    @classmethod
    def from_dict(cls, data: dict[str, Any], namespace: str = '') -> Trigger:
        spec = data.get('spec', data)
        concurrency = spec.get('concurrency')
        return cls(
            name=data['name'],
            namespace=data.get('namespace') or namespace,
            labels=dict(data.get('labels', {})),
            service_account=spec.get('serviceAccountName', ''),
            bindings=[TriggerSpecBinding.from_dict(b) for b in spec.get('bindings', [])],
            template=TriggerSpecTemplate.from_dict(spec.get('template', {})),
            interceptors=[interceptor_spec_from_dict(i) for i in spec.get('interceptors', [])],
            concurrency=Concurrency.from_dict(concurrency) if concurrency else None,
        )


def parse_trigger_id(trigger_id: str) -> tuple[str, str]:
    """Split 'namespaces/<ns>/triggers/<name>' into (namespace, name).

    Returns empty strings when the ID is not in that form.
    """
    parts = trigger_id.split('/')
    if len(parts) != 4:
        return '', ''
    return parts[1], parts[3]


def _as_text(value: Any) -> str:
    """Render a catalog value as the string a param carries."""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(',', ':'))
