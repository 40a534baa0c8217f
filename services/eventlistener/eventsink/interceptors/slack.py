"""Slack interceptor: turns a form-encoded slash command or action payload
into extensions."""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional
from urllib.parse import parse_qs

from eventsink.interceptors import (
    DispatchContext,
    Interceptor,
    fail,
    failf,
    get_header,
    get_secret,
    is_form_encoded,
    proceed,
)
from eventsink.models.interceptor import Code, InterceptorRequest, InterceptorResponse
from eventsink.services.secrets import SecretCache

SIGNATURE_HEADER = 'X-Slack-Signature'
TIMESTAMP_HEADER = 'X-Slack-Request-Timestamp'
SIGNATURE_VERSION = 'v0'


class SlackInterceptor(Interceptor):
    """
    Copies the ``requestedFields`` of a Slack form payload into extensions.

    Each extension holds the list of values the form carried for that field.
    When a ``secretRef`` is configured the ``v0`` request signature is
    verified first.
    """

    name = 'slack'

    def __init__(self, secrets: Optional[SecretCache]):
        self.secrets = secrets

    def process(self, ctx: DispatchContext, request: InterceptorRequest) -> InterceptorResponse:
        params = request.interceptor_params

        if not is_form_encoded(request):
            return fail(
                Code.INVALID_ARGUMENT,
                'missing header in payload: ContentType application/x-www-form-urlencoded',
            )
        signature = get_header(request.header, SIGNATURE_HEADER)
        if not signature:
            return fail(Code.INVALID_ARGUMENT, f'missing header in payload: {SIGNATURE_HEADER}')

        if params.get('secretRef'):
            secret, failure = get_secret(self.secrets, request)
            if failure is not None:
                return failure
            timestamp = get_header(request.header, TIMESTAMP_HEADER)
            expected = sign_request(secret, timestamp, request.body)
            if not hmac.compare_digest(expected, signature):
                return fail(Code.FAILED_PRECONDITION, 'slack signature check failed')

        requested = params.get('requestedFields')
        if not requested:
            return fail(Code.NOT_FOUND, 'missing requested field definition')

        payload = parse_qs(request.body, keep_blank_values=True)
        extensions = {}
        for name in requested:
            if name not in payload:
                return failf(Code.NOT_FOUND, 'requested field %s does not exist in payload', name)
            extensions[name] = payload[name]
        return proceed(extensions)


def sign_request(secret: str, timestamp: str, body: str) -> str:
    """Slack ``v0`` signature of a request body."""
    base = f'{SIGNATURE_VERSION}:{timestamp}:{body}'.encode('utf-8')
    digest = hmac.new(secret.encode('utf-8'), base, hashlib.sha256).hexdigest()
    return f'{SIGNATURE_VERSION}={digest}'
