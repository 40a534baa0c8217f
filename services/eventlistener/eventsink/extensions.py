"""Flask extension initialization for the eventsink EventListener service."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flask import Flask


def init_lister(app: Flask) -> None:
    """Initialize catalog lister.

    Args:
        app: Flask application instance.
    """
    from eventsink.exceptions import ListerError
    from eventsink.services.lister import Lister

    lister = Lister(path=app.config['CATALOG_PATH'] or None)
    try:
        lister.reload()
        app.logger.info("Catalog lister initialized successfully")
    except ListerError as e:
        app.logger.error(f"Failed to load catalog: {e}")
    app.extensions['lister'] = lister


def init_messaging(app: Flask) -> None:
    """Initialize messaging service.

    Args:
        app: Flask application instance.
    """
    if not app.config['MESSAGING_ENABLED']:
        app.logger.info("Messaging disabled by configuration")
        app.extensions['messaging'] = None
        return

    try:
        from eventsink.services.messaging import MessagingService

        messaging = MessagingService(
            redis_url=app.config['REDIS_URL'],
            resources_stream=app.config['RESOURCES_STREAM'],
            results_stream=app.config['RESULTS_STREAM'],
        )
        messaging.max_stream_len = app.config['REDIS_STREAM_MAX_LEN']
        app.extensions['messaging'] = messaging
        app.logger.info("Messaging service initialized successfully")

    except Exception as e:
        app.logger.error(f"Failed to initialize messaging service: {e}")
        app.extensions['messaging'] = None


def init_secret_cache(app: Flask) -> None:
    """Initialize secret cache.

    Args:
        app: Flask application instance.
    """
    try:
        from eventsink.services.secrets import RedisSecretSource, SecretCache

        messaging = app.extensions.get('messaging')
        if not messaging:
            app.logger.warning("Messaging service not available for secret cache")
            app.extensions['secret_cache'] = None
            return

        cache = SecretCache(
            RedisSecretSource(messaging.redis_client),
            namespace=app.config['EL_NAMESPACE'],
            resync_interval=app.config['SECRET_RESYNC_INTERVAL'],
        )
        cache.watch(app.config['EL_NAMESPACE'])
        cache.start()
        app.extensions['secret_cache'] = cache
        app.logger.info("Secret cache initialized successfully")

    except Exception as e:
        app.logger.error(f"Failed to initialize secret cache: {e}")
        app.extensions['secret_cache'] = None


def init_interceptors(app: Flask) -> None:
    """Initialize interceptor registry.

    Args:
        app: Flask application instance.
    """
    from eventsink.interceptors.registry import InterceptorRegistry

    lister = app.extensions['lister']
    app.extensions['interceptors'] = InterceptorRegistry(
        secrets=app.extensions.get('secret_cache'),
        messaging=app.extensions.get('messaging'),
        resolve_url=lister.get_interceptor_url,
        timeout=app.config['INTERCEPTOR_TIMEOUT'],
    )
    app.logger.info("Interceptor registry initialized successfully")


def init_dispatcher(app: Flask) -> None:
    """Initialize dispatcher.

    Args:
        app: Flask application instance.
    """
    from eventsink.interceptors.chain import InterceptorChain
    from eventsink.services.dispatcher import Dispatcher
    from eventsink.services.resources import StreamResourceCreator

    messaging = app.extensions.get('messaging')
    if not messaging:
        app.logger.warning("Messaging service not available for dispatcher")
        app.extensions['dispatcher'] = None
        return

    app.extensions['dispatcher'] = Dispatcher(
        lister=app.extensions['lister'],
        chain=InterceptorChain(app.extensions['interceptors']),
        creator=StreamResourceCreator(messaging),
        el_name=app.config['EL_NAME'],
        el_namespace=app.config['EL_NAMESPACE'],
        payload_validation=app.config['PAYLOAD_VALIDATION'],
        timeout=app.config['DISPATCH_TIMEOUT'],
        max_workers=app.config['MAX_TRIGGER_WORKERS'],
    )
    app.logger.info("Dispatcher initialized successfully")


def init_extensions(app: Flask) -> None:
    """Initialize Flask extensions.

    Services depend on each other in this order:
    lister -> messaging -> secret cache -> interceptors -> dispatcher

    Args:
        app: Flask application instance.
    """
    init_lister(app)
    init_messaging(app)
    init_secret_cache(app)
    init_interceptors(app)
    init_dispatcher(app)


def close_extensions(app: Flask) -> None:
    """Stop background threads and close connections.

    Args:
        app: Flask application instance.
    """
    cache = app.extensions.get('secret_cache')
    if cache:
        cache.stop()

    interceptors = app.extensions.get('interceptors')
    if interceptors:
        interceptors.close()

    messaging = app.extensions.get('messaging')
    if messaging:
        messaging.close()
