"""Validation utilities for inbound events."""

from __future__ import annotations

import json
from typing import Any

from werkzeug.exceptions import BadRequest

MAX_PAYLOAD_SIZE = 10 * 1024 * 1024  # 10 MB


class ValidationError(BadRequest):
    """Custom validation error exception."""

    def __init__(self, message: str, field: str | None = None):
        """Initialize validation error.

        Args:
            message: Error message.
            field: Field name that failed validation.
        """
        super().__init__(message)
        self.field = field
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary format.

        Returns:
            Dictionary with error details.
        """
        result = {
            'error': self.message,
        }
        if self.field:
            result['field'] = self.field
        return result


def validate_payload(body: bytes | str) -> None:
    """Validate that an event body is a JSON object.

    Args:
        body: Raw request body.

    Raises:
        ValidationError: If the body is too large, not JSON, or not an object.
    """
    if len(body) > MAX_PAYLOAD_SIZE:
        size_mb = len(body) / (1024 * 1024)
        max_mb = MAX_PAYLOAD_SIZE / (1024 * 1024)
        raise ValidationError(
            f'Payload size ({size_mb:.2f} MB) exceeds maximum size of {max_mb} MB',
            field='body',
        )

    try:
        data = json.loads(body)
    except ValueError as e:
        raise ValidationError(f'Invalid event body format: {e}', field='body') from e

    if not isinstance(data, dict):
        raise ValidationError('Invalid event body format: expected a JSON object', field='body')


def decode_body(body: bytes) -> str:
    """Decode an event body as strict UTF-8.

    Args:
        body: Raw request body.

    Returns:
        The decoded text; encoding it again yields the same bytes.

    Raises:
        ValidationError: If the body is not valid UTF-8.
    """
    try:
        return body.decode('utf-8')
    except UnicodeDecodeError as e:
        raise ValidationError(f'Invalid event body format: body is not valid UTF-8: {e}', field='body') from e
