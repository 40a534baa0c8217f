"""
Interceptor wire contract and interceptor specifications.

InterceptorRequest / InterceptorResponse are the JSON contract shared by the
in-process interceptors and remote ones. The interceptor specs form a tagged
union: a trigger's interceptor entry is exactly one of the spec classes below,
and the chain runtime dispatches on its ``kind``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, ClassVar, Optional, Union


class Code(IntEnum):
    """Status codes carried by interceptor responses (gRPC numbering)."""

    OK = 0
    CANCELLED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    PERMISSION_DENIED = 7
    FAILED_PRECONDITION = 9
    ABORTED = 10
    INTERNAL = 13
    UNAVAILABLE = 14
    UNAUTHENTICATED = 16


@dataclass
class TriggerContext:
    """Correlation data for one trigger invocation."""

    event_url: str = ''
    event_id: str = ''
    trigger_id: str = ''

    def to_dict(self) -> dict[str, str]:
        return {
            'url': self.event_url,
            'event_id': self.event_id,
            'trigger_id': self.trigger_id,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> TriggerContext:
        data = data or {}
        return cls(
            event_url=data.get('url', ''),
            event_id=data.get('event_id', ''),
            trigger_id=data.get('trigger_id', ''),
        )


@dataclass
class Status:
    """Structured status of an interceptor response."""

    code: Code = Code.OK
    message: str = ''

    def err(self) -> str:
        return f'rpc error: code = {self.code.name} desc = {self.message}'

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {'code': int(self.code)}
        if self.message:
            result['message'] = self.message
        return result

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Status:
        data = data or {}
        try:
            code = Code(int(data.get('code', 0)))
        except ValueError:
            code = Code.UNKNOWN
        return cls(code=code, message=data.get('message', ''))


@dataclass
class InterceptorRequest:
    """Request handed to every interceptor in a chain.

    The chain mutates one request object as it walks the interceptors:
    extensions accumulate, and proxy interceptors may replace the body
    and header.
    """

    body: str = ''
    header: dict[str, list[str]] = field(default_factory=dict)
    extensions: dict[str, Any] = field(default_factory=dict)
    interceptor_params: dict[str, Any] = field(default_factory=dict)
    context: TriggerContext = field(default_factory=TriggerContext)

    def to_dict(self) -> dict[str, Any]:
        return {
            'body': self.body,
            'header': self.header,
            'extensions': self.extensions,
            'interceptor_params': self.interceptor_params,
            'context': self.context.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InterceptorRequest:
        header = {}
        for key, value in (data.get('header') or {}).items():
            header[key] = list(value) if isinstance(value, (list, tuple)) else [str(value)]
        return cls(
            body=data.get('body') or '',
            header=header,
            extensions=dict(data.get('extensions') or {}),
            interceptor_params=dict(data.get('interceptor_params') or {}),
            context=TriggerContext.from_dict(data.get('context')),
        )


@dataclass
class InterceptorResponse:
    """Outcome of a single interceptor."""

    continue_: bool = False
    extensions: Optional[dict[str, Any]] = None
    status: Status = field(default_factory=Status)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {'continue': self.continue_, 'status': self.status.to_dict()}
        if self.extensions:
            result['extensions'] = self.extensions
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InterceptorResponse:
        return cls(
            continue_=bool(data.get('continue', False)),
            extensions=data.get('extensions'),
            status=Status.from_dict(data.get('status')),
        )


@dataclass
class SecretRef:
    """Reference to one data field of a secret."""

    secret_name: str
    secret_key: str
    namespace: str = ''

    def to_dict(self) -> dict[str, str]:
        return {
            'secretName': self.secret_name,
            'secretKey': self.secret_key,
            'namespace': self.namespace,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SecretRef:
        return cls(
            secret_name=data['secretName'],
            secret_key=data['secretKey'],
            namespace=data.get('namespace', ''),
        )


@dataclass
class ServiceRef:
    """In-cluster service address of a webhook interceptor."""

    name: str
    namespace: str = ''
    port: int = 80
    path: str = '/'

    def url(self, default_namespace: str) -> str:
        namespace = self.namespace or default_namespace
        path = self.path if self.path.startswith('/') else f'/{self.path}'
        return f'http://{self.name}.{namespace}.svc:{self.port}{path}'


@dataclass
class Overlay:
    """A policy overlay: query whose bound variables become an extension."""

    extension: str
    query: str
    bindings: list[str] = field(default_factory=list)
    single: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            'extension': self.extension,
            'query': self.query,
            'bindings': list(self.bindings),
            'single': self.single,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Overlay:
        return cls(
            extension=data['extension'],
            query=data['query'],
            bindings=list(data.get('bindings', [])),
            single=bool(data.get('single', False)),
        )


@dataclass
class WebhookInterceptorSpec:
    kind: ClassVar[str] = 'webhook'

    url: str = ''
    service: Optional[ServiceRef] = None
    header: dict[str, Union[str, list[str]]] = field(default_factory=dict)

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {'header': dict(self.header)}
        if self.url:
            params['url'] = self.url
        if self.service is not None:
            params['service'] = {
                'name': self.service.name,
                'namespace': self.service.namespace,
                'port': self.service.port,
                'path': self.service.path,
            }
        return params


@dataclass
class PolicyInterceptorSpec:
    kind: ClassVar[str] = 'policy'

    filter: str = ''
    overlays: list[Overlay] = field(default_factory=list)

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if self.filter:
            params['filter'] = self.filter
        if self.overlays:
            params['overlays'] = [o.to_dict() for o in self.overlays]
        return params


@dataclass
class ResultsInterceptorSpec:
    kind: ClassVar[str] = 'results'

    stream: str = ''

    def to_params(self) -> dict[str, Any]:
        return {'stream': self.stream} if self.stream else {}


@dataclass
class DebugInterceptorSpec:
    kind: ClassVar[str] = 'debug'

    def to_params(self) -> dict[str, Any]:
        return {}


@dataclass
class PlatformInterceptorSpec:
    """Common shape of the Git hosting interceptors: a webhook secret and an
    allow-list of event types."""

    kind: ClassVar[str] = ''

    secret_ref: Optional[SecretRef] = None
    event_types: list[str] = field(default_factory=list)

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if self.secret_ref is not None:
            params['secretRef'] = self.secret_ref.to_dict()
        if self.event_types:
            params['eventTypes'] = list(self.event_types)
        return params

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlatformInterceptorSpec:
        secret_ref = data.get('secretRef')
        return cls(
            secret_ref=SecretRef.from_dict(secret_ref) if secret_ref else None,
            event_types=list(data.get('eventTypes', [])),
        )


@dataclass
class GitHubInterceptorSpec(PlatformInterceptorSpec):
    kind: ClassVar[str] = 'github'


@dataclass
class GitLabInterceptorSpec(PlatformInterceptorSpec):
    kind: ClassVar[str] = 'gitlab'


@dataclass
class BitbucketInterceptorSpec(PlatformInterceptorSpec):
    kind: ClassVar[str] = 'bitbucket'


@dataclass
class SlackInterceptorSpec:
    kind: ClassVar[str] = 'slack'

    secret_ref: Optional[SecretRef] = None
    requested_fields: list[str] = field(default_factory=list)

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {'requestedFields': list(self.requested_fields)}
        if self.secret_ref is not None:
            params['secretRef'] = self.secret_ref.to_dict()
        return params


@dataclass
class RefInterceptorSpec:
    """Interceptor served remotely, resolved to a URL by name."""

    kind: ClassVar[str] = 'ref'

    name: str = ''
    params: dict[str, Any] = field(default_factory=dict)

    def to_params(self) -> dict[str, Any]:
        return dict(self.params)


InterceptorSpec = Union[
    WebhookInterceptorSpec,
    PolicyInterceptorSpec,
    ResultsInterceptorSpec,
    DebugInterceptorSpec,
    GitHubInterceptorSpec,
    GitLabInterceptorSpec,
    BitbucketInterceptorSpec,
    SlackInterceptorSpec,
    RefInterceptorSpec,
]


def interceptor_spec_from_dict(data: dict[str, Any]) -> InterceptorSpec:
    """Build the interceptor spec for one catalog entry.

    The entry must carry exactly one variant key (webhook, policy, results,
    debug, github, gitlab, bitbucket, slack or ref). An optional ``name`` is
    ignored.

    Raises:
        ValueError: If zero or several variants are present.
    """
    variants = [k for k in _SPEC_PARSERS if k in data]
    if len(variants) != 1:
        raise ValueError(
            f'interceptor must set exactly one of {", ".join(_SPEC_PARSERS)}; got {variants or "none"}'
        )
    kind = variants[0]
    return _SPEC_PARSERS[kind](data[kind] or {})


def _webhook_spec(data: dict[str, Any]) -> WebhookInterceptorSpec:
    service = data.get('service') or data.get('objectRef')
    return WebhookInterceptorSpec(
        url=data.get('url', ''),
        service=ServiceRef(
            name=service['name'],
            namespace=service.get('namespace', ''),
            port=int(service.get('port', 80)),
            path=service.get('path', '/'),
        ) if service else None,
        header=dict(data.get('header', {})),
    )


def _policy_spec(data: dict[str, Any]) -> PolicyInterceptorSpec:
    return PolicyInterceptorSpec(
        filter=data.get('filter', ''),
        overlays=[Overlay.from_dict(o) for o in data.get('overlays', [])],
    )


def _slack_spec(data: dict[str, Any]) -> SlackInterceptorSpec:
    secret_ref = data.get('secretRef')
    return SlackInterceptorSpec(
        secret_ref=SecretRef.from_dict(secret_ref) if secret_ref else None,
        requested_fields=list(data.get('requestedFields', [])),
    )


def _ref_spec(data: dict[str, Any]) -> RefInterceptorSpec:
    if isinstance(data, str):
        return RefInterceptorSpec(name=data)
    return RefInterceptorSpec(name=data['name'], params=dict(data.get('params', {})))


_SPEC_PARSERS = {
    'webhook': _webhook_spec,
    'policy': _policy_spec,
    'results': lambda data: ResultsInterceptorSpec(stream=data.get('stream', '')),
    'debug': lambda data: DebugInterceptorSpec(),
    'github': GitHubInterceptorSpec.from_dict,
    'gitlab': GitLabInterceptorSpec.from_dict,
    'bitbucket': BitbucketInterceptorSpec.from_dict,
    'slack': _slack_spec,
    'ref': _ref_spec,
}
