"""
Webhook interceptor: proxies the evolving request to an external service.

Before forwarding, accumulated extensions are written into the JSON body
under ``extensions``, the original event URL is sent in the
``EventListener-Request-URL`` header and configured headers replace any
request header of the same name. A 200 answer replaces the request body and
headers seen by the rest of the chain; anything else stops the trigger.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Union

import httpx

from eventsink.interceptors import DispatchContext, Interceptor, canonical, fail, failf, proceed
from eventsink.models.interceptor import Code, InterceptorRequest, InterceptorResponse, ServiceRef
from eventsink.models.trigger import parse_trigger_id
from eventsink.template.jsonpath import canonical_header_key

logger = logging.getLogger(__name__)

INTERCEPTOR_TIMEOUT = 5.0
WEBHOOK_URL_HEADER = 'EventListener-Request-URL'

# Recomputed by the HTTP client for the forwarded body
_HOP_HEADERS = ('Connection', 'Content-Length', 'Host', 'Transfer-Encoding')


class WebhookInterceptor(Interceptor):
    name = 'webhook'

    def __init__(self, client: Optional[httpx.Client] = None, timeout: float = INTERCEPTOR_TIMEOUT):
        self.client = client or httpx.Client()
        self.timeout = timeout

    def process(self, ctx: DispatchContext, request: InterceptorRequest) -> InterceptorResponse:
        params = request.interceptor_params
        trigger_namespace, _ = parse_trigger_id(request.context.trigger_id)
        try:
            url = resolve_url(params, trigger_namespace or 'default')
        except (KeyError, TypeError, ValueError) as e:
            return failf(Code.INVALID_ARGUMENT, 'invalid webhook interceptor params: %s', e)

        body = add_extensions_to_body(request.body, request.extensions)
        header = canonical(request.header)
        for name in _HOP_HEADERS:
            header.pop(name, None)
        header[canonical_header_key(WEBHOOK_URL_HEADER)] = [request.context.event_url]
        add_interceptor_headers(header, params.get('header') or {})

        if ctx.cancelled:
            return fail(Code.DEADLINE_EXCEEDED, 'event deadline exceeded before calling webhook')

        try:
            response = self.client.post(
                url,
                content=body.encode('utf-8'),
                headers=[(k, v) for k, values in header.items() for v in values],
                timeout=ctx.bounded(self.timeout),
            )
        except httpx.TimeoutException as e:
            return failf(Code.DEADLINE_EXCEEDED, 'webhook interceptor %s timed out: %s', url, e)
        except httpx.HTTPError as e:
            return failf(Code.UNAVAILABLE, 'webhook interceptor %s unreachable: %s', url, e)

        if response.status_code != 200:
            return failf(
                Code.FAILED_PRECONDITION,
                'request rejected; status: %s; message: %s',
                response.status_code,
                response.text,
            )

        request.body = response.text
        request.header = response_header(response)
        logger.debug(f"Webhook interceptor {url} accepted event {request.context.event_id}")
        return proceed()


def resolve_url(params: dict[str, Any], default_namespace: str) -> str:
    """URL of the webhook: explicit ``url`` or an in-cluster service."""
    if params.get('url'):
        return params['url']
    service = params.get('service')
    if not service:
        raise ValueError('webhook interceptor needs a url or a service')
    return ServiceRef(
        name=service['name'],
        namespace=service.get('namespace', ''),
        port=int(service.get('port', 80)),
        path=service.get('path', '/'),
    ).url(default_namespace)


def add_extensions_to_body(body: str, extensions: dict[str, Any]) -> str:
    """Merge extensions into a JSON object body under ``extensions``.

    Non-object bodies are forwarded unchanged.
    """
    if not extensions or not body:
        return body
    try:
        data = json.loads(body)
    except ValueError:
        return body
    if not isinstance(data, dict):
        return body
    existing = data.get('extensions')
    merged = dict(existing) if isinstance(existing, dict) else {}
    merged.update(extensions)
    data['extensions'] = merged
    return json.dumps(data, separators=(',', ':'), ensure_ascii=False)


def add_interceptor_headers(header: dict[str, list[str]], configured: dict[str, Union[str, list[str]]]) -> None:
    """Apply configured headers, replacing request headers of the same name."""
    for name, value in configured.items():
        values = [value] if isinstance(value, str) else [str(v) for v in value]
        header[canonical_header_key(name)] = values


def response_header(response: httpx.Response) -> dict[str, list[str]]:
    header: dict[str, list[str]] = {}
    for key, value in response.headers.multi_items():
        header.setdefault(canonical_header_key(key), []).append(value)
    return header
