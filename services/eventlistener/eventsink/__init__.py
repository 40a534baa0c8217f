"""Flask application factory for the eventsink EventListener service."""

from __future__ import annotations

import atexit
import logging
import time

from flask import Flask, g, request

from eventsink.config import Config
from eventsink.extensions import close_extensions, init_extensions

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


def create_app(config: type[Config] | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Configuration class to use. Defaults to Config from environment.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)

    # Load configuration
    if config is None:
        config = Config
    app.config.from_object(config)
    logging.getLogger().setLevel(app.config['LOG_LEVEL'].upper())

    # Initialize extensions
    init_extensions(app)
    atexit.register(close_extensions, app)

    # Register API blueprints
    from eventsink.api import api_bp
    app.register_blueprint(api_bp)

    # Request logging middleware
    @app.before_request
    def log_request_info() -> None:
        """Log request information before processing."""
        g.start_time = time.time()
        logger.info(
            f"Request: {request.method} {request.path} "
            f"from {request.remote_addr} ({request.content_length or 0} bytes)"
        )

    @app.after_request
    def log_response_info(response):
        """Log response information after processing."""
        if hasattr(g, 'start_time'):
            duration = time.time() - g.start_time
            logger.info(
                f"Response: {request.method} {request.path} "
                f"[{response.status_code}] in {duration:.3f}s"
            )
        return response

    return app
