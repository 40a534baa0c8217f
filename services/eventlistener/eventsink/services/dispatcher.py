"""
Dispatcher - fans one inbound event out to the triggers of an EventListener.

Each trigger runs in its own worker: interceptor chain, binding resolution,
param resolution, concurrency admission, rendering and creation. A trigger
group runs its own interceptor chain first and then fans out to the triggers
its selector picks. A trigger reports 201 when it created its resources and
202 otherwise; the event's response code is the lowest code reported, so the
event succeeds as soon as any trigger created something. Trigger failures
are logged, never raised.
"""

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Optional

from eventsink.exceptions import CreationError, ListerError, ResolutionError
from eventsink.interceptors import DispatchContext
from eventsink.interceptors.chain import InterceptorChain
from eventsink.models.interceptor import InterceptorRequest, TriggerContext
from eventsink.models.listener import EventListener, TriggerGroup
from eventsink.models.trigger import Trigger
from eventsink.services.concurrency import InFlightRegistry, get_concurrency_key
from eventsink.services.lister import Lister
from eventsink.services.resources import ResourceCreator
from eventsink.template.resource import resolve_params, resolve_resources, resolve_trigger
from eventsink.utils.validators import ValidationError, decode_body, validate_payload

logger = logging.getLogger(__name__)

CREATED = 201
ACCEPTED = 202
BAD_REQUEST = 400
INTERNAL_ERROR = 500


@dataclass
class EventResponse:
    """Outcome of one inbound event."""

    status_code: int
    event_listener: str
    namespace: str
    event_id: str
    event_listener_uid: str = ''
    error_message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        body = {
            'eventListener': self.event_listener,
            'namespace': self.namespace,
            'eventListenerUID': self.event_listener_uid,
            'eventID': self.event_id,
        }
        if self.error_message:
            body['errorMessage'] = self.error_message
        return body


@dataclass
class Event:
    """An inbound HTTP event as the dispatcher sees it."""

    body: bytes
    header: dict[str, list[str]] = field(default_factory=dict)
    url: str = ''


class Dispatcher:
    """
    Dispatcher for the events of one EventListener.

    The lister, interceptor chain and resource creator are injected, so
    several dispatchers can coexist (for example in tests).
    """

    def __init__(
        self,
        lister: Lister,
        chain: InterceptorChain,
        creator: ResourceCreator,
        el_name: str,
        el_namespace: str,
        payload_validation: bool = True,
        timeout: float = 30.0,
        max_workers: int = 32,
        in_flight: Optional[InFlightRegistry] = None,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            lister: Catalog lister
            chain: Interceptor chain runtime
            creator: Receives every rendered resource
            el_name: Name of the owning EventListener
            el_namespace: Namespace of the owning EventListener
            payload_validation: Require a JSON-object body
            timeout: Seconds all trigger workers of one event may take
            max_workers: Upper bound on concurrent trigger workers per event
            in_flight: Concurrency admission registry shared across events
        """
        self.lister = lister
        self.chain = chain
        self.creator = creator
        self.el_name = el_name
        self.el_namespace = el_namespace
        self.payload_validation = payload_validation
        self.timeout = timeout
        self.max_workers = max_workers
        self.in_flight = in_flight or InFlightRegistry()

        logger.info(f"Dispatcher initialized for EventListener {el_namespace}/{el_name}")

    def handle_event(self, event: Event) -> EventResponse:
        """
        Process one inbound event.

        Args:
            event: Raw body, headers and URL of the request

        Returns:
            EventResponse: 201 if any trigger created resources, 202 if none
            did, 400 when the body is not UTF-8 or fails payload validation,
            500 if the EventListener cannot be loaded.
        """
        event_id = str(uuid.uuid4())
        response = EventResponse(
            status_code=ACCEPTED,
            event_listener=self.el_name,
            namespace=self.el_namespace,
            event_id=event_id,
        )

        try:
            decode_body(event.body)
            if self.payload_validation:
                validate_payload(event.body)
        except ValidationError as e:
            logger.info(f"Rejected event {event_id} for {self.el_namespace}/{self.el_name}: {e.message}")
            response.status_code = BAD_REQUEST
            response.error_message = e.message
            return response

        try:
            listener = self.lister.get_event_listener(self.el_namespace, self.el_name)
        except ListerError as e:
            logger.error(f"Error getting EventListener {self.el_namespace}/{self.el_name}: {e}")
            response.status_code = INTERNAL_ERROR
            response.error_message = str(e)
            return response

        response.event_listener_uid = listener.uid
        triggers = self.lister.triggers_for(listener)
        codes = self.dispatch(listener, triggers, event, event_id)
        response.status_code = min(codes, default=ACCEPTED)

        logger.info(
            f"Event {event_id} for {listener.namespace}/{listener.name}: "
            f"{codes.count(CREATED)}/{len(codes)} triggers created resources"
        )
        return response

    def dispatch(
        self,
        listener: EventListener,
        triggers: list[Trigger],
        event: Event,
        event_id: str,
    ) -> list[int]:
        """
        Run every trigger and trigger group of the listener concurrently.

        Returns:
            list: One code per trigger, grouped triggers included. Work still
            running when the dispatch timeout passes is counted as 202.
        """
        ctx = DispatchContext(self.timeout)
        jobs: dict[str, Callable[[], list[int]]] = {}
        for trigger in triggers:
            jobs[trigger.trigger_id] = partial(self._trigger_codes, ctx, listener, trigger, event, event_id)
        for group in listener.trigger_groups:
            jobs[group.trigger_id] = partial(self.process_trigger_group, ctx, listener, group, event, event_id)
        return self._run_concurrently(ctx, listener, event_id, jobs)

    def _run_concurrently(
        self,
        ctx: DispatchContext,
        listener: EventListener,
        event_id: str,
        jobs: dict[str, Callable[[], list[int]]],
    ) -> list[int]:
        """
        Run jobs on a worker pool until they finish or the context's deadline.

        Jobs still running at the deadline count as one 202 each; the
        context is cancelled so their outstanding calls fail fast.
        """
        if not jobs:
            return []

        workers = max(1, min(len(jobs), self.max_workers))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="trigger")
        try:
            futures = {executor.submit(job): job_id for job_id, job in jobs.items()}
            done, not_done = wait(futures, timeout=ctx.remaining())
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        if not_done:
            ctx.cancel()
            for future in not_done:
                logger.error(
                    f"EventListener {listener.name} in namespace {listener.namespace}: "
                    f"event {event_id} {futures[future]} did not finish in {self.timeout}s"
                )

        codes: list[int] = []
        for future in done:
            codes.extend(future.result())
        return codes + [ACCEPTED] * len(not_done)

    def _trigger_codes(self, *args: Any) -> list[int]:
        return [self.process_trigger(*args)]

    def process_trigger_group(
        self,
        ctx: DispatchContext,
        listener: EventListener,
        group: TriggerGroup,
        event: Event,
        event_id: str,
    ) -> list[int]:
        """
        Run a trigger group's interceptor chain, then its selected triggers.

        Every selected trigger starts from the body, header and extensions
        the group's chain produced.

        Returns:
            list: One code per selected trigger, or a single 202 when the
            group's chain stops the event.
        """
        log_prefix = (
            f"EventListener {listener.name} in namespace {listener.namespace}: "
            f"event {event_id} trigger group {group.name}"
        )
        request = InterceptorRequest(
            body=event.body.decode('utf-8'),
            header={k: list(v) for k, v in event.header.items()},
            context=TriggerContext(
                event_url=event.url,
                event_id=event_id,
                trigger_id=group.trigger_id,
            ),
        )
        try:
            body, header, result = self.chain.run(ctx, group.interceptors, request)
        except Exception as e:
            logger.error(f"{log_prefix}: unexpected error: {e}", exc_info=True)
            return [ACCEPTED]
        if not result.continue_:
            logger.info(f"{log_prefix}: interceptor stopped trigger processing: {result.status.err()}")
            return [ACCEPTED]

        triggers = self.lister.select_triggers(
            group.namespace_selector, group.label_selector, listener.namespace
        )
        logger.debug(f"{log_prefix}: selected {len(triggers)} triggers")

        grouped = Event(body=body.encode('utf-8'), header=header, url=event.url)
        jobs: dict[str, Callable[[], list[int]]] = {
            trigger.trigger_id: partial(
                self._trigger_codes, ctx, listener, trigger, grouped, event_id, request.extensions
            )
            for trigger in triggers
        }
        return self._run_concurrently(ctx, listener, event_id, jobs)

    def process_trigger(
        self,
        ctx: DispatchContext,
        listener: EventListener,
        trigger: Trigger,
        event: Event,
        event_id: str,
        extensions: Optional[dict[str, Any]] = None,
    ) -> int:
        """
        Run one trigger end to end.

        Args:
            extensions: Starting extensions, set by the trigger's group

        Returns:
            int: 201 when every rendered resource was created, else 202.
        """
        log_prefix = (
            f"EventListener {listener.name} in namespace {listener.namespace}: "
            f"event {event_id} trigger {trigger.name}"
        )
        try:
            return self._process_trigger(ctx, listener, trigger, event, event_id, extensions, log_prefix)
        except ResolutionError as e:
            logger.error(f"{log_prefix}: {e}")
        except CreationError as e:
            logger.error(f"{log_prefix}: problem creating resource: {e}")
        except Exception as e:
            logger.error(f"{log_prefix}: unexpected error: {e}", exc_info=True)
        return ACCEPTED

    def _process_trigger(
        self,
        ctx: DispatchContext,
        listener: EventListener,
        trigger: Trigger,
        event: Event,
        event_id: str,
        extensions: Optional[dict[str, Any]],
        log_prefix: str,
    ) -> int:
        request = InterceptorRequest(
            body=event.body.decode('utf-8'),
            header={k: list(v) for k, v in event.header.items()},
            extensions=dict(extensions or {}),
            context=TriggerContext(
                event_url=event.url,
                event_id=event_id,
                trigger_id=trigger.trigger_id,
            ),
        )

        body, header, result = self.chain.run(ctx, trigger.interceptors, request)
        if not result.continue_:
            logger.info(f"{log_prefix}: interceptor stopped trigger processing: {result.status.err()}")
            return ACCEPTED

        resolved = resolve_trigger(
            trigger,
            self.lister.get_binding(trigger.namespace),
            self.lister.get_cluster_binding,
            self.lister.get_template(trigger.namespace),
        )
        params = resolve_params(resolved, body, header, request.extensions, request.context)
        logger.debug(f"{log_prefix}: resolved params {params}")

        key = get_concurrency_key(trigger.concurrency, params)
        with self.in_flight.admit(key, trigger.concurrency, ctx) as admitted:
            if not admitted:
                logger.info(f"{log_prefix}: concurrency key {key} is busy, skipping")
                return ACCEPTED
            if ctx.cancelled:
                logger.error(f"{log_prefix}: deadline exceeded before creating resources")
                return ACCEPTED

            resources = resolve_resources(resolved.template, params)
            for doc in resources:
                self.creator.create(
                    doc,
                    trigger.name,
                    event_id,
                    listener.name,
                    listener.namespace,
                    trigger.service_account,
                )

        logger.info(f"{log_prefix}: created {len(resources)} resources")
        return CREATED
