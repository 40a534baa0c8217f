"""eventsink HTTP API package.

Registers the sink and interceptor blueprints and their error handlers.
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, jsonify
from werkzeug.exceptions import HTTPException

from eventsink.api.interceptors import interceptors_bp
from eventsink.api.sink import sink_bp
from eventsink.exceptions import InterceptorError
from eventsink.utils.validators import ValidationError

logger = logging.getLogger(__name__)

# Create main API blueprint
api_bp = Blueprint('api', __name__)

# Register sub-blueprints
api_bp.register_blueprint(sink_bp)
api_bp.register_blueprint(interceptors_bp)


# Error handlers
@api_bp.errorhandler(ValidationError)
def handle_validation_error(error: ValidationError) -> tuple[dict[str, Any], int]:
    """Handle validation errors.

    Args:
        error: ValidationError instance.

    Returns:
        JSON response with error details and 400 status code.
    """
    return jsonify(error.to_dict()), 400


@api_bp.errorhandler(InterceptorError)
def handle_interceptor_error(error: InterceptorError) -> tuple[dict[str, Any], int]:
    """Handle unknown interceptor errors.

    Args:
        error: InterceptorError instance.

    Returns:
        JSON response with error details and 404 status code.
    """
    return jsonify({
        'error': str(error),
        'code': 404,
    }), 404


@api_bp.errorhandler(Exception)
def handle_generic_error(error: Exception) -> tuple[dict[str, Any], int]:
    """Handle generic exceptions.

    Args:
        error: Exception instance.

    Returns:
        JSON response with error details and 500 status code.
    """
    if isinstance(error, HTTPException):
        return error

    logger.exception('Unhandled exception in API')

    return jsonify({
        'error': 'An unexpected error occurred',
        'code': 500,
    }), 500


__all__ = ['api_bp']
