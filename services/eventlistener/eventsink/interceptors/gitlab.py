"""GitLab interceptor: event type allow-list and webhook token check."""

from __future__ import annotations

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

TOKEN_HEADER = 'X-Gitlab-Token'
EVENT_HEADER = 'X-Gitlab-Event'


class GitLabInterceptor(Interceptor):
    """Checks ``X-Gitlab-Event`` against ``eventTypes``, then compares
    ``X-Gitlab-Token`` with the configured secret.
    """

    name = 'gitlab'

    def __init__(self, secrets: Optional[SecretCache]):
        self.secrets = secrets

    def process(self, ctx: DispatchContext, request: InterceptorRequest) -> InterceptorResponse:
        params = request.interceptor_params

        failure = check_event_type(request, EVENT_HEADER, params.get('eventTypes') or [])
        if failure is not None:
            return failure

        ref = params.get('secretRef')
        if ref:
            if isinstance(ref, dict) and not ref.get('secretKey'):
                return fail(Code.FAILED_PRECONDITION, 'gitlab interceptor secretRef.secretKey is empty')
            token = get_header(request.header, TOKEN_HEADER)
            if not token:
                return fail(Code.INVALID_ARGUMENT, 'no X-GitLab-Token header set')
            secret, failure = get_secret(self.secrets, request)
            if failure is not None:
                return failure
            if not hmac.compare_digest(token.encode('utf-8'), secret.encode('utf-8')):
                return fail(Code.INVALID_ARGUMENT, 'Invalid X-GitLab-Token')

        return proceed()
