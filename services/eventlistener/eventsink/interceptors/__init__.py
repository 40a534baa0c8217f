"""
Interceptor capability and helpers shared by every interceptor variant.

An interceptor inspects one trigger invocation's evolving request and
answers with an InterceptorResponse: continue (optionally adding
extensions) or stop with a status. Configuration for the call arrives in
``request.interceptor_params``; the chain sets it per interceptor.
"""

from __future__ import annotations

import json
import threading
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

from eventsink.exceptions import SecretNotFoundError
from eventsink.models.interceptor import Code, InterceptorRequest, InterceptorResponse, SecretRef, Status
from eventsink.models.trigger import parse_trigger_id
from eventsink.template.jsonpath import canonical_header_key

if TYPE_CHECKING:
    from eventsink.services.secrets import SecretCache

FORM_CONTENT_TYPE = 'application/x-www-form-urlencoded'
INVALID_CONTENT_TYPE_MESSAGE = (
    'form parameter encoding not supported, please change the hook to send JSON payloads'
)


class DispatchContext:
    """Deadline and cancellation shared by the tasks of one inbound event.

    The dispatcher cancels the context when its handler deadline passes;
    blocking calls made on behalf of a trigger bound their own timeouts by
    ``remaining()`` so they fail fast instead of outliving the request.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.deadline = time.monotonic() + timeout if timeout else None
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Cancel every task sharing this context."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        """True once cancelled or past the deadline."""
        if self._cancel.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, or None when there is none."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def bounded(self, timeout: float) -> float:
        """Clamp a call's own timeout to what is left of the deadline."""
        remaining = self.remaining()
        return timeout if remaining is None else min(timeout, remaining)

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout seconds; returns True if cancelled meanwhile."""
        return self._cancel.wait(self.bounded(timeout))


class Interceptor(ABC):
    """One step of a trigger's interceptor chain."""

    name: str = ''

    @abstractmethod
    def process(self, ctx: DispatchContext, request: InterceptorRequest) -> InterceptorResponse:
        """Evaluate the request.

        Args:
            ctx: Deadline and cancellation of the inbound event.
            request: Evolving request view; extensions seen so far included.

        Returns:
            InterceptorResponse. Failures are reported through its status,
            not raised.
        """


def fail(code: Code, message: str) -> InterceptorResponse:
    """Response that stops the chain.

    Args:
        code: Status code reported to the chain.
        message: Reason, reported verbatim.

    Returns:
        InterceptorResponse with ``continue_`` unset.
    """
    return InterceptorResponse(continue_=False, status=Status(code=code, message=message))


def failf(code: Code, fmt: str, *args: Any) -> InterceptorResponse:
    """Like fail(), with the message built by ``fmt % args``."""
    return fail(code, fmt % args)


def proceed(extensions: Optional[dict[str, Any]] = None) -> InterceptorResponse:
    """Response that lets the chain continue.

    Args:
        extensions: Extensions to merge into the request, if any.

    Returns:
        InterceptorResponse with ``continue_`` set.
    """
    return InterceptorResponse(continue_=True, extensions=extensions)


def canonical(header: dict[str, list[str]]) -> dict[str, list[str]]:
    """Copy of header keyed by canonical header names."""
    result: dict[str, list[str]] = {}
    for key, values in (header or {}).items():
        if isinstance(values, str):
            values = [values]
        result.setdefault(canonical_header_key(key), []).extend(values)
    return result


def get_header(header: dict[str, list[str]], name: str) -> str:
    """First value of a header, matched case-insensitively; '' when absent."""
    values = canonical(header).get(canonical_header_key(name)) or []
    return values[0] if values else ''


def is_form_encoded(request: InterceptorRequest) -> bool:
    """True when the request's Content-Type is form encoding."""
    content_type = get_header(request.header, 'Content-Type')
    return content_type.split(';', 1)[0].strip().lower() == FORM_CONTENT_TYPE


def parse_json_body(request: InterceptorRequest) -> tuple[Optional[dict[str, Any]], Optional[InterceptorResponse]]:
    """Decode the request body as a JSON object.

    An empty body decodes to an empty object.

    Returns:
        Tuple of (body, None) on success or (None, failure response).
    """
    if is_form_encoded(request):
        return None, fail(Code.INVALID_ARGUMENT, INVALID_CONTENT_TYPE_MESSAGE)
    if not request.body:
        return {}, None
    try:
        body = json.loads(request.body)
    except ValueError as e:
        return None, failf(Code.INVALID_ARGUMENT, 'unable to parse body as JSON: %s', e)
    if not isinstance(body, dict):
        return None, fail(Code.INVALID_ARGUMENT, 'body must be a JSON object')
    return body, None


def check_event_type(
    request: InterceptorRequest,
    header_name: str,
    event_types: list[str],
) -> Optional[InterceptorResponse]:
    """Enforce an allow-list of event types carried in a header.

    Args:
        request: Request whose header names the event type.
        header_name: Header holding the event type, matched case-insensitively.
        event_types: Allowed types; empty allows every type.

    Returns:
        None when the event type is allowed, otherwise a failure response.
    """
    if not event_types:
        return None
    actual = get_header(request.header, header_name)
    if actual in event_types:
        return None
    return failf(Code.FAILED_PRECONDITION, 'event type %s is not allowed', actual)


def get_secret(
    secrets: Optional[SecretCache],
    request: InterceptorRequest,
) -> tuple[Optional[str], Optional[InterceptorResponse]]:
    """Look up the secret named by the ``secretRef`` interceptor param.

    A ref without a namespace is looked up in the trigger's namespace.

    Returns:
        Tuple of (secret value, None) on success or (None, failure response).
    """
    try:
        ref = SecretRef.from_dict(request.interceptor_params['secretRef'])
    except (KeyError, TypeError) as e:
        return None, failf(Code.INVALID_ARGUMENT, 'invalid secretRef: %s', e)
    if not ref.namespace:
        ref.namespace, _ = parse_trigger_id(request.context.trigger_id)
    if secrets is None:
        return None, fail(Code.INTERNAL, 'secret cache unavailable')
    try:
        return secrets.get(ref), None
    except SecretNotFoundError as e:
        return None, failf(Code.FAILED_PRECONDITION, 'error getting secret: %s', e)


__all__ = [
    'DispatchContext',
    'Interceptor',
    'canonical',
    'check_event_type',
    'fail',
    'failf',
    'get_header',
    'get_secret',
    'is_form_encoded',
    'parse_json_body',
    'proceed',
]
