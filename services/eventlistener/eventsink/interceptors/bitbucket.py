"""Bitbucket interceptor: webhook signature and event type checks."""

from __future__ import annotations

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
from eventsink.interceptors.github import SIGNATURE_HEADER, validate_signature
from eventsink.models.interceptor import Code, InterceptorRequest, InterceptorResponse
from eventsink.services.secrets import SecretCache

EVENT_HEADER = 'X-Event-Key'


class BitbucketInterceptor(Interceptor):
    """Validates the ``X-Hub-Signature`` HMAC of the body, then checks
    ``X-Event-Key`` against ``eventTypes``.
    """

    name = 'bitbucket'

    def __init__(self, secrets: Optional[SecretCache]):
        self.secrets = secrets

    def process(self, ctx: DispatchContext, request: InterceptorRequest) -> InterceptorResponse:
        params = request.interceptor_params

        if params.get('secretRef'):
            signature = get_header(request.header, SIGNATURE_HEADER)
            if not signature:
                return fail(Code.INVALID_ARGUMENT, 'no X-Hub-Signature header set')
            token, failure = get_secret(self.secrets, request)
            if failure is not None:
                return failure
            error = validate_signature(signature, request.body.encode('utf-8'), token.encode('utf-8'))
            if error:
                return fail(Code.FAILED_PRECONDITION, error)

        return check_event_type(request, EVENT_HEADER, params.get('eventTypes') or []) or proceed()
