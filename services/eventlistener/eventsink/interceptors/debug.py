"""Pass-through interceptor that logs what it sees."""

from __future__ import annotations

import logging

from eventsink.interceptors import DispatchContext, Interceptor, proceed
from eventsink.models.interceptor import InterceptorRequest, InterceptorResponse

logger = logging.getLogger(__name__)


class DebugInterceptor(Interceptor):
    name = 'debug'

    def process(self, ctx: DispatchContext, request: InterceptorRequest) -> InterceptorResponse:
        logger.info(
            f"Interceptor request for event {request.context.event_id} "
            f"trigger {request.context.trigger_id}: "
            f"body={request.body!r} header={request.header} extensions={request.extensions}"
        )
        return proceed()
