"""Resource creation - where rendered resource documents leave the sink."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

from redis.exceptions import RedisError

from eventsink.exceptions import CreationError
from eventsink.services.messaging import MessagingService, ResourceMessage

logger = logging.getLogger(__name__)


class ResourceCreator(ABC):
    """Creates one rendered resource on behalf of a trigger."""

    @abstractmethod
    def create(
        self,
        doc: str,
        trigger_name: str,
        event_id: str,
        owner_name: str,
        owner_namespace: str,
        service_account: Optional[str] = None,
    ) -> None:
        """
        Create a resource.

        Args:
            doc: Rendered JSON document
            trigger_name: Trigger that rendered it
            event_id: Event the trigger fired for
            owner_name: EventListener name
            owner_namespace: EventListener namespace
            service_account: Service account the trigger acts as

        Raises:
            CreationError: If the resource cannot be created.
        """


class StreamResourceCreator(ResourceCreator):
    """Publishes rendered resources to the messaging resources stream."""

    def __init__(self, messaging: MessagingService) -> None:
        self.messaging = messaging

    def create(
        self,
        doc: str,
        trigger_name: str,
        event_id: str,
        owner_name: str,
        owner_namespace: str,
        service_account: Optional[str] = None,
    ) -> None:
        try:
            json.loads(doc)
        except ValueError as e:
            raise CreationError(f"rendered resource is not valid JSON: {e}") from e

        message = ResourceMessage(
            resource=doc,
            trigger=trigger_name,
            event_id=event_id,
            listener=owner_name,
            listener_namespace=owner_namespace,
            service_account=service_account or None,
        )
        try:
            self.messaging.publish_resource(message)
        except RedisError as e:
            raise CreationError(f"failed to publish resource: {e}") from e
