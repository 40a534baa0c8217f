"""Redis Streams messaging service for emitted resources and result records.

This module provides the MessagingService class that publishes rendered
resource documents and recorded interceptor requests to Redis Streams,
where downstream creators and result stores consume them.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


@dataclass
class ResourceMessage:
    """Message carrying one rendered resource document."""

    resource: str
    trigger: str
    event_id: str
    listener: str
    listener_namespace: str
    service_account: Optional[str] = None


@dataclass
class RecordMessage:
    """Message recording a decorated interceptor request."""

    result: str
    record: str
    event_id: str
    trigger_id: str
    data: Dict[str, Any]


class MessagingService:
    """Redis Streams-based messaging for resource emission and result records."""

    # Stream names
    RESOURCES_STREAM = "eventsink:resources"
    RESULTS_STREAM = "eventsink:results"

    def __init__(
        self,
        redis_url: Optional[str] = None,
        resources_stream: Optional[str] = None,
        results_stream: Optional[str] = None,
        client: Optional[redis.Redis] = None,
    ):
        """Initialize the messaging service.

        Args:
            redis_url: Redis connection URL (redis://host:port/db)
                      Defaults to REDIS_URL environment variable
            resources_stream: Stream receiving rendered resources
            results_stream: Stream receiving result records
            client: Already connected client; skips connecting
        """
        self.redis_url = redis_url or os.getenv(
            "REDIS_URL", "redis://localhost:6379/0"
        )
        self.max_stream_len = int(os.getenv("REDIS_STREAM_MAX_LEN", "10000"))
        self.resources_stream = resources_stream or self.RESOURCES_STREAM
        self.results_stream = results_stream or self.RESULTS_STREAM

        if client is not None:
            self.redis_client = client
            return

        try:
            self.redis_client = redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            # Test connection
            self.redis_client.ping()
            logger.info(f"Connected to Redis at {self.redis_url}")
        except RedisError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise

    def publish_resource(self, message: ResourceMessage) -> str:
        """Publish a rendered resource to the resources stream.

        Args:
            message: ResourceMessage with the document and its provenance

        Returns:
            str: Message ID from Redis XADD

        Raises:
            RedisError: If publishing fails
        """
        try:
            message_data = {k: v for k, v in asdict(message).items() if v is not None}

            message_id = self.redis_client.xadd(
                self.resources_stream,
                message_data,
                maxlen=self.max_stream_len,
                approximate=True,
            )

            logger.info(
                f"Published resource for trigger {message.trigger} "
                f"event {message.event_id} with message ID {message_id}"
            )
            return message_id

        except RedisError as e:
            logger.error(f"Failed to publish resource: {e}")
            raise

    def publish_record(self, record: RecordMessage, stream: Optional[str] = None) -> str:
        """Publish a result record to the results stream.

        Args:
            record: RecordMessage with the recorded request
            stream: Override of the configured results stream

        Returns:
            str: Message ID from Redis XADD

        Raises:
            RedisError: If publishing fails
        """
        try:
            message_data = asdict(record)
            # Convert complex types to JSON strings
            message_data["data"] = json.dumps(message_data["data"])

            message_id = self.redis_client.xadd(
                stream or self.results_stream,
                message_data,
                maxlen=self.max_stream_len,
                approximate=True,
            )

            logger.info(
                f"Published record {record.record} with message ID {message_id}"
            )
            return message_id

        except RedisError as e:
            logger.error(f"Failed to publish record: {e}")
            raise

    def close(self) -> None:
        """Close the Redis connection."""
        try:
            self.redis_client.close()
            logger.info("Closed Redis connection")
        except RedisError as e:
            logger.warning(f"Error closing Redis connection: {e}")
