"""Tests for the webhook and remote interceptors."""

import json

import httpx
import pytest

from eventsink.interceptors import DispatchContext
from eventsink.interceptors.remote import RemoteInterceptor
from eventsink.interceptors.webhook import (
    WebhookInterceptor,
    add_extensions_to_body,
    resolve_url,
)
from eventsink.models.interceptor import Code, InterceptorRequest, TriggerContext


class Handler:
    """httpx MockTransport handler answering with a canned response."""

    def __init__(self, response=None, error=None):
        self.response = response or httpx.Response(200, json={'ok': True})
        self.error = error
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


def client_for(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.fixture
def webhook_request():
    return InterceptorRequest(
        body='{"action":"opened"}',
        header={'Content-Type': ['application/json'], 'X-Custom': ['original']},
        extensions={'team': 'platform'},
        interceptor_params={
            'url': 'http://hooks.example.com/check',
            'header': {'X-Custom': 'configured', 'X-Multi': ['a', 'b']},
        },
        context=TriggerContext(
            event_url='http://el.default.svc/',
            event_id='evt-1',
            trigger_id='namespaces/ci/triggers/on-pr',
        ),
    )


class TestWebhookInterceptor:
    def test_forwards_request(self, webhook_request):
        handler = Handler()
        WebhookInterceptor(client_for(handler)).process(DispatchContext(5), webhook_request)

        sent = handler.requests[0]
        assert str(sent.url) == 'http://hooks.example.com/check'
        assert json.loads(sent.content) == {'action': 'opened', 'extensions': {'team': 'platform'}}
        assert sent.headers['EventListener-Request-URL'] == 'http://el.default.svc/'
        assert sent.headers['X-Custom'] == 'configured'
        assert sent.headers.get_list('X-Multi') == ['a', 'b']

    def test_inbound_content_length_not_forwarded(self, webhook_request):
        webhook_request.header['Content-Length'] = ['999']
        webhook_request.header['Host'] = ['el.default.svc']
        handler = Handler()
        WebhookInterceptor(client_for(handler)).process(DispatchContext(5), webhook_request)

        sent = handler.requests[0]
        assert sent.headers['Content-Length'] == str(len(sent.content))
        assert sent.headers['Host'] == 'hooks.example.com'

    def test_response_replaces_body_and_header(self, webhook_request):
        handler = Handler(httpx.Response(200, json={'action': 'rewritten'}, headers={'X-Out': 'yes'}))
        response = WebhookInterceptor(client_for(handler)).process(DispatchContext(5), webhook_request)

        assert response.continue_
        assert json.loads(webhook_request.body) == {'action': 'rewritten'}
        assert webhook_request.header['X-Out'] == ['yes']

    def test_rejected(self, webhook_request):
        handler = Handler(httpx.Response(403, text='nope'))
        response = WebhookInterceptor(client_for(handler)).process(DispatchContext(5), webhook_request)

        assert not response.continue_
        assert response.status.code == Code.FAILED_PRECONDITION
        assert response.status.message == 'request rejected; status: 403; message: nope'

    def test_unreachable(self, webhook_request):
        handler = Handler(error=httpx.ConnectError('connection refused'))
        response = WebhookInterceptor(client_for(handler)).process(DispatchContext(5), webhook_request)
        assert response.status.code == Code.UNAVAILABLE

    def test_timeout(self, webhook_request):
        handler = Handler(error=httpx.ReadTimeout('too slow'))
        response = WebhookInterceptor(client_for(handler)).process(DispatchContext(5), webhook_request)
        assert response.status.code == Code.DEADLINE_EXCEEDED

    def test_cancelled_context_skips_call(self, webhook_request):
        handler = Handler()
        ctx = DispatchContext(5)
        ctx.cancel()

        response = WebhookInterceptor(client_for(handler)).process(ctx, webhook_request)

        assert response.status.code == Code.DEADLINE_EXCEEDED
        assert handler.requests == []

    def test_missing_url(self, webhook_request):
        webhook_request.interceptor_params = {}
        response = WebhookInterceptor(client_for(Handler())).process(DispatchContext(5), webhook_request)
        assert response.status.code == Code.INVALID_ARGUMENT


class TestWebhookHelpers:
    def test_service_url_defaults_namespace(self):
        params = {'service': {'name': 'checker', 'port': 8080, 'path': 'hook'}}
        assert resolve_url(params, 'ci') == 'http://checker.ci.svc:8080/hook'

    def test_explicit_url_wins(self):
        params = {'url': 'http://x/', 'service': {'name': 'checker'}}
        assert resolve_url(params, 'ci') == 'http://x/'

    def test_extensions_merged_into_existing(self):
        body = add_extensions_to_body('{"extensions":{"a":1}}', {'b': 2})
        assert json.loads(body) == {'extensions': {'a': 1, 'b': 2}}

    def test_non_object_body_unchanged(self):
        assert add_extensions_to_body('[1,2]', {'b': 2}) == '[1,2]'


class TestRemoteInterceptor:
    def test_posts_request_and_parses_response(self, webhook_request):
        handler = Handler(httpx.Response(200, json={'continue': True, 'extensions': {'slack': 'sent'}}))
        interceptor = RemoteInterceptor('slack', 'http://slack/', client_for(handler))

        response = interceptor.process(DispatchContext(5), webhook_request)

        assert response.continue_
        assert response.extensions == {'slack': 'sent'}
        sent = json.loads(handler.requests[0].content)
        assert sent['context']['event_id'] == 'evt-1'
        assert sent['extensions'] == {'team': 'platform'}

    def test_stop_status_is_preserved(self, webhook_request):
        handler = Handler(httpx.Response(200, json={
            'continue': False,
            'status': {'code': 9, 'message': 'not allowed'},
        }))
        response = RemoteInterceptor('slack', 'http://slack/', client_for(handler)).process(
            DispatchContext(5), webhook_request
        )
        assert response.status.code == Code.FAILED_PRECONDITION
        assert response.status.message == 'not allowed'

    def test_non_200(self, webhook_request):
        handler = Handler(httpx.Response(500, text='boom'))
        response = RemoteInterceptor('slack', 'http://slack/', client_for(handler)).process(
            DispatchContext(5), webhook_request
        )
        assert response.status.code == Code.UNAVAILABLE
        assert response.status.message == 'interceptor response was not 200: boom'

    def test_invalid_json(self, webhook_request):
        handler = Handler(httpx.Response(200, text='<html>'))
        response = RemoteInterceptor('slack', 'http://slack/', client_for(handler)).process(
            DispatchContext(5), webhook_request
        )
        assert response.status.code == Code.INTERNAL
