"""Services package for the eventsink EventListener service.

This package provides the service layer: the dispatcher, catalog lister,
secret cache, messaging and resource creation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from eventsink.interceptors.registry import InterceptorRegistry
    from eventsink.services.dispatcher import Dispatcher
    from eventsink.services.lister import Lister
    from eventsink.services.messaging import MessagingService
    from eventsink.services.secrets import SecretCache


def get_dispatcher() -> Optional[Dispatcher]:
    """Get dispatcher instance (request-scoped).

    Returns:
        Dispatcher instance or None if not initialized
    """
    from flask import current_app

    return current_app.extensions.get('dispatcher')


def get_lister() -> Optional[Lister]:
    """Get catalog lister instance (request-scoped).

    Returns:
        Lister instance or None if not initialized
    """
    from flask import current_app

    return current_app.extensions.get('lister')


def get_messaging() -> Optional[MessagingService]:
    """Get messaging service instance (request-scoped).

    Returns:
        MessagingService instance or None if not initialized
    """
    from flask import current_app

    return current_app.extensions.get('messaging')


def get_secret_cache() -> Optional[SecretCache]:
    """Get secret cache instance (request-scoped).

    Returns:
        SecretCache instance or None if not initialized
    """
    from flask import current_app

    return current_app.extensions.get('secret_cache')


def get_interceptors() -> Optional[InterceptorRegistry]:
    """Get interceptor registry instance (request-scoped).

    Returns:
        InterceptorRegistry instance or None if not initialized
    """
    from flask import current_app

    return current_app.extensions.get('interceptors')


__all__ = [
    'get_dispatcher',
    'get_lister',
    'get_messaging',
    'get_secret_cache',
    'get_interceptors',
]
