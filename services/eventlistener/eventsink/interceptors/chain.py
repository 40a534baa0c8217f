"""Interceptor chain runtime."""

from __future__ import annotations

import logging
from typing import Optional

from eventsink.exceptions import InterceptorError
from eventsink.interceptors import DispatchContext, fail, proceed
from eventsink.interceptors.registry import InterceptorRegistry
from eventsink.models.interceptor import Code, InterceptorRequest, InterceptorResponse, InterceptorSpec

logger = logging.getLogger(__name__)


class InterceptorChain:
    """Runs a trigger's interceptors in order over one evolving request.

    Extensions returned by each interceptor are merged into the request so
    later interceptors, and templating afterwards, see all of them. The
    first response with ``continue`` unset stops the chain.
    """

    def __init__(self, registry: InterceptorRegistry):
        self.registry = registry

    def run(
        self,
        ctx: DispatchContext,
        specs: list[InterceptorSpec],
        request: InterceptorRequest,
    ) -> tuple[str, dict[str, list[str]], InterceptorResponse]:
        """Execute the chain.

        Args:
            ctx: Deadline and cancellation of the inbound event.
            specs: Interceptor entries of the trigger, in order.
            request: Request to evolve; mutated in place.

        Returns:
            Tuple of (final body, final header, last response). The trigger
            may proceed only if the response's ``continue_`` is set.
        """
        for index, spec in enumerate(specs):
            if ctx.cancelled:
                return request.body, request.header, fail(
                    Code.DEADLINE_EXCEEDED, 'event deadline exceeded'
                )

            response = self._process(ctx, spec, request)
            if response.extensions:
                request.extensions.update(response.extensions)

            if not response.continue_:
                logger.info(
                    f"Interceptor {index} ({spec.kind}) stopped trigger "
                    f"{request.context.trigger_id} for event {request.context.event_id}: "
                    f"{response.status.err()}"
                )
                return request.body, request.header, response

        return request.body, request.header, proceed(request.extensions or None)

    def _process(
        self,
        ctx: DispatchContext,
        spec: InterceptorSpec,
        request: InterceptorRequest,
    ) -> InterceptorResponse:
        request.interceptor_params = spec.to_params()
        try:
            interceptor = self.registry.for_spec(spec)
            response: Optional[InterceptorResponse] = interceptor.process(ctx, request)
        except InterceptorError as e:
            response = fail(Code.UNAVAILABLE, str(e))
        finally:
            request.interceptor_params = {}
        if response is None:
            return fail(Code.INTERNAL, f'interceptor {spec.kind} returned no response')
        return response
