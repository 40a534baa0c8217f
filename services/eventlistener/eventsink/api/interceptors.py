"""In-process interceptors served over the remote interceptor contract.

- GET /interceptors - List interceptor names
- POST /interceptors/<name> - Process an InterceptorRequest
"""

from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, jsonify, request

from eventsink.interceptors import DispatchContext
from eventsink.models.interceptor import InterceptorRequest
from eventsink.services import get_interceptors
from eventsink.utils.validators import ValidationError

interceptors_bp = Blueprint('interceptors', __name__, url_prefix='/interceptors')


@interceptors_bp.route('', methods=['GET'])
def list_interceptors() -> tuple[dict[str, Any], int]:
    """List the interceptors this service runs in-process.

    Returns:
        JSON response with interceptor names.
    """
    registry = get_interceptors()
    return jsonify({'interceptors': registry.names if registry else []}), 200


@interceptors_bp.route('/<name>', methods=['POST'])
def process(name: str) -> tuple[dict[str, Any], int]:
    """Run one interceptor against the posted request.

    Args:
        name: Interceptor name

    Returns:
        JSON InterceptorResponse with status 200; the interceptor's own
        verdict is carried in the body.
    """
    registry = get_interceptors()
    if registry is None:
        return jsonify({'error': 'Interceptors not available', 'code': 503}), 503

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON InterceptorRequest', field='body')

    interceptor = registry.get(name)
    ctx = DispatchContext(current_app.config['INTERCEPTOR_TIMEOUT'])
    response = interceptor.process(ctx, InterceptorRequest.from_dict(data))
    return jsonify(response.to_dict()), 200
