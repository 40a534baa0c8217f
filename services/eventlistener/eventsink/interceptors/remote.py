"""Remote interceptor: the InterceptorRequest JSON contract over HTTP."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from eventsink.interceptors import DispatchContext, Interceptor, fail, failf
from eventsink.models.interceptor import Code, InterceptorRequest, InterceptorResponse

logger = logging.getLogger(__name__)


class RemoteInterceptor(Interceptor):
    """Calls an interceptor served at url.

    The request is POSTed as JSON; a 200 answer must carry an
    InterceptorResponse. Unreachable hosts, other status codes and
    undecodable answers stop the trigger.
    """

    def __init__(self, name: str, url: str, client: Optional[httpx.Client] = None, timeout: float = 5.0):
        self.name = name
        self.url = url
        self.client = client or httpx.Client()
        self.timeout = timeout

    def process(self, ctx: DispatchContext, request: InterceptorRequest) -> InterceptorResponse:
        if ctx.cancelled:
            return failf(Code.DEADLINE_EXCEEDED, 'event deadline exceeded before calling %s', self.name)

        try:
            response = self.client.post(
                self.url,
                json=request.to_dict(),
                timeout=ctx.bounded(self.timeout),
            )
        except httpx.TimeoutException as e:
            return failf(Code.DEADLINE_EXCEEDED, 'interceptor %s timed out: %s', self.name, e)
        except httpx.HTTPError as e:
            return failf(Code.UNAVAILABLE, 'interceptor %s unreachable: %s', self.name, e)

        if response.status_code != 200:
            return failf(
                Code.UNAVAILABLE, 'interceptor response was not 200: %s', response.text
            )

        try:
            data = response.json()
        except ValueError as e:
            return failf(Code.INTERNAL, 'invalid response from interceptor %s: %s', self.name, e)
        if not isinstance(data, dict):
            return fail(Code.INTERNAL, f'invalid response from interceptor {self.name}')

        return InterceptorResponse.from_dict(data)
