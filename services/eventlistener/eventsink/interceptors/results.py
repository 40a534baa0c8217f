"""Results interceptor: records the decorated request and always continues."""

from __future__ import annotations

import logging
from typing import Optional

from redis.exceptions import RedisError

from eventsink.interceptors import (
    INVALID_CONTENT_TYPE_MESSAGE,
    DispatchContext,
    Interceptor,
    fail,
    is_form_encoded,
    proceed,
)
from eventsink.models.interceptor import Code, InterceptorRequest, InterceptorResponse
from eventsink.models.trigger import parse_trigger_id
from eventsink.services.messaging import MessagingService, RecordMessage

logger = logging.getLogger(__name__)


def result_name(request: InterceptorRequest) -> str:
    """Name of the result grouping every record of one event."""
    namespace, _ = parse_trigger_id(request.context.trigger_id)
    return f'namespaces/{namespace}/results/{request.context.event_id}'


class ResultsInterceptor(Interceptor):
    """Publishes the full InterceptorRequest to the results stream.

    Publishing failures are logged; the trigger is never stopped by them.
    """

    name = 'results'

    def __init__(self, messaging: Optional[MessagingService]):
        self.messaging = messaging

    def process(self, ctx: DispatchContext, request: InterceptorRequest) -> InterceptorResponse:
        if is_form_encoded(request):
            return fail(Code.INVALID_ARGUMENT, INVALID_CONTENT_TYPE_MESSAGE)

        if self.messaging is None:
            logger.warning(
                f"Messaging unavailable, not recording event {request.context.event_id}"
            )
            return proceed()

        result = result_name(request)
        record = RecordMessage(
            result=result,
            record=f'{result}/records/{request.context.trigger_id.rsplit("/", 1)[-1]}',
            event_id=request.context.event_id,
            trigger_id=request.context.trigger_id,
            data=request.to_dict(),
        )
        try:
            self.messaging.publish_record(record, stream=request.interceptor_params.get('stream') or None)
        except RedisError as e:
            logger.error(f"Failed to record result {result}: {e}")
        return proceed()
