"""
Concurrency keys and the in-flight admission gate.

A trigger's concurrency policy names a key template over its params, for
example ``$(params.repo)-$(params.branch)``. Invocations rendering the same
key share a slot budget (``limit``, default 1): with the ``skip`` strategy an
invocation finding the key saturated is dropped, with ``wait`` it blocks until
a slot frees or the event's deadline passes.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from eventsink.interceptors import DispatchContext
from eventsink.models.trigger import Concurrency, Param
from eventsink.template.resource import PARAM_PATTERN

logger = logging.getLogger(__name__)

# Upper bound of one condition wait; deadlines are re-checked after each
WAIT_SLICE = 0.5


def get_concurrency_key(concurrency: Optional[Concurrency], params: list[Param]) -> str:
    """Render the admission key of a trigger invocation.

    Returns:
        The key, or '' when no policy is configured (no restriction).
    """
    if concurrency is None or not concurrency.key:
        return ''
    values = {p.name: p.value for p in params}
    return PARAM_PATTERN.sub(lambda m: values.get(m.group(1), m.group(0)), concurrency.key)


class InFlightRegistry:
    """Reference counts of in-flight invocations per concurrency key."""

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}
        self._cond = threading.Condition()

    def in_flight(self, key: str) -> int:
        with self._cond:
            return self._counts.get(key, 0)

    def acquire(
        self,
        key: str,
        limit: int = 1,
        strategy: str = 'skip',
        ctx: Optional[DispatchContext] = None,
    ) -> bool:
        """Take a slot for key.

        Args:
            key: Concurrency key; '' is never restricted.
            limit: Slots available per key.
            strategy: 'skip' to fail immediately, 'wait' to block.
            ctx: Deadline bounding a 'wait'.

        Returns:
            True if a slot was taken and must be released.
        """
        if not key:
            return True

        with self._cond:
            while self._counts.get(key, 0) >= limit:
                if strategy != 'wait':
                    return False
                if ctx is not None and ctx.cancelled:
                    return False
                timeout = ctx.bounded(WAIT_SLICE) if ctx is not None else WAIT_SLICE
                self._cond.wait(timeout=timeout)
            self._counts[key] = self._counts.get(key, 0) + 1
            return True

    def release(self, key: str) -> None:
        if not key:
            return
        with self._cond:
            count = self._counts.get(key, 0) - 1
            if count > 0:
                self._counts[key] = count
            else:
                self._counts.pop(key, None)
            self._cond.notify_all()

    @contextmanager
    def admit(
        self,
        key: str,
        concurrency: Optional[Concurrency],
        ctx: Optional[DispatchContext] = None,
    ) -> Iterator[bool]:
        """Hold a slot for the duration of a block.

        Yields:
            False when the invocation was not admitted; the block should
            then skip its work.
        """
        if concurrency is None:
            admitted = self.acquire(key, ctx=ctx)
        else:
            admitted = self.acquire(key, concurrency.limit, concurrency.strategy, ctx)
        try:
            yield admitted
        finally:
            if admitted:
                self.release(key)
