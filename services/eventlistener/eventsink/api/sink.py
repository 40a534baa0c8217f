"""EventListener sink endpoints.

- POST / - Deliver an event to the EventListener's triggers
- GET /live - Liveness probe
"""

from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request

from eventsink.services import get_dispatcher
from eventsink.services.dispatcher import Event

sink_bp = Blueprint('sink', __name__)


def _request_header() -> dict[str, list[str]]:
    """Request headers as name -> list of values."""
    header: dict[str, list[str]] = {}
    for key, value in request.headers.items():
        header.setdefault(key, []).append(value)
    return header


@sink_bp.route('/', methods=['POST'])
def handle_event() -> tuple[dict[str, Any], int]:
    """Dispatch an inbound event.

    Returns:
        JSON response with the EventListener, namespace and event ID;
        201 if any trigger created resources, 202 otherwise, 400 for an
        invalid payload and 500 if the EventListener cannot be loaded.
    """
    dispatcher = get_dispatcher()
    if dispatcher is None:
        return jsonify({
            'error': 'Dispatcher not available',
            'code': 503,
        }), 503

    response = dispatcher.handle_event(Event(
        body=request.get_data(),
        header=_request_header(),
        url=request.url,
    ))
    return jsonify(response.to_dict()), response.status_code


@sink_bp.route('/live', methods=['GET'])
def live() -> tuple[str, int]:
    """Liveness probe.

    Returns:
        Plain 'ok' with status 200.
    """
    return 'ok', 200
