"""GitHub interceptor: webhook signature and event type checks."""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional

from eventsink.interceptors import (
    DispatchContext,
    Interceptor,
    check_event_type,
    fail,
    get_header,
    get_secret,
    proceed,
)
from eventsink.models.interceptor import Code, InterceptorRequest, InterceptorResponse
from eventsink.services.secrets import SecretCache

SIGNATURE_256_HEADER = 'X-Hub-Signature-256'
SIGNATURE_HEADER = 'X-Hub-Signature'
EVENT_HEADER = 'X-GitHub-Event'

_DIGESTS = {
    'sha256': hashlib.sha256,
    'sha1': hashlib.sha1,
}


class GitHubInterceptor(Interceptor):
    """Validates ``X-Hub-Signature-256`` (or legacy ``X-Hub-Signature``)
    against a cached secret and enforces an allow-list of event types.
    """

    name = 'github'

    def __init__(self, secrets: Optional[SecretCache]):
        self.secrets = secrets

    def process(self, ctx: DispatchContext, request: InterceptorRequest) -> InterceptorResponse:
        params = request.interceptor_params

        if params.get('secretRef'):
            signature = get_header(request.header, SIGNATURE_256_HEADER) or get_header(
                request.header, SIGNATURE_HEADER
            )
            if not signature:
                return fail(Code.FAILED_PRECONDITION, 'no X-Hub-Signature header set')
            token, failure = get_secret(self.secrets, request)
            if failure is not None:
                return failure

            error = validate_signature(signature, request.body.encode('utf-8'), token.encode('utf-8'))
            if error:
                return fail(Code.FAILED_PRECONDITION, error)

        return check_event_type(request, EVENT_HEADER, params.get('eventTypes') or []) or proceed()


def validate_signature(signature: str, payload: bytes, secret: bytes) -> str:
    """Check a ``<algo>=<hexdigest>`` signature of payload.

    Returns:
        '' when valid, otherwise the reason it is not.
    """
    algorithm, _, digest = signature.partition('=')
    hash_func = _DIGESTS.get(algorithm)
    if hash_func is None or not digest:
        return f'unsupported signature format: {signature.split("=", 1)[0]}'
    expected = hmac.new(secret, payload, hash_func).hexdigest()
    if not hmac.compare_digest(expected, digest):
        return 'payload signature check failed'
    return ''
