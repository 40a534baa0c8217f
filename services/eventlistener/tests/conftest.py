"""Pytest configuration and fixtures for eventsink tests."""

from __future__ import annotations

import copy
from typing import Any, Optional

import pytest
from flask import Flask

from eventsink import create_app
from eventsink.config import TestingConfig
from eventsink.exceptions import CreationError
from eventsink.interceptors.chain import InterceptorChain
from eventsink.interceptors.registry import InterceptorRegistry
from eventsink.services.dispatcher import Dispatcher
from eventsink.services.lister import Lister
from eventsink.services.resources import ResourceCreator
from eventsink.services.secrets import SecretCache, SecretSource

CATALOG: dict[str, Any] = {
    'eventListeners': [
        {
            'name': 'test-listener',
            'namespace': 'default',
            'uid': 'el-uid-1',
            'spec': {
                'triggers': [
                    {'triggerRef': 'on-push'},
                    {'triggerRef': 'broken'},
                ],
            },
        },
        {
            'name': 'broken-listener',
            'namespace': 'default',
            'spec': {'triggers': [{'triggerRef': 'broken'}]},
        },
        {
            'name': 'empty-listener',
            'namespace': 'default',
            'spec': {'triggers': []},
        },
    ],
    'triggers': [
        {
            'name': 'on-push',
            'namespace': 'default',
            'labels': {'team': 'platform'},
            'spec': {
                'bindings': [
                    {'ref': 'push-binding'},
                    {'name': 'event', 'value': '$(header.X-GitHub-Event)'},
                ],
                'template': {'ref': 'build'},
            },
        },
        {
            'name': 'broken',
            'namespace': 'default',
            'spec': {
                'bindings': [{'ref': 'missing-binding'}],
                'template': {'ref': 'build'},
            },
        },
    ],
    'triggerBindings': [
        {
            'name': 'push-binding',
            'namespace': 'default',
            'params': [
                {'name': 'sha', 'value': '$(body.head_commit.id)'},
                {'name': 'repo', 'value': '$(body.repository.name)'},
            ],
        },
    ],
    'clusterTriggerBindings': [
        {
            'name': 'cluster-binding',
            'params': [{'name': 'cluster', 'value': 'prod'}],
        },
    ],
    'triggerTemplates': [
        {
            'name': 'build',
            'namespace': 'default',
            'params': [
                {'name': 'sha'},
                {'name': 'repo'},
                {'name': 'event', 'default': 'push'},
            ],
            'resourcetemplates': [
                {
                    'kind': 'Build',
                    'metadata': {'name': 'build-$(uid)'},
                    'spec': {
                        'sha': '$(params.sha)',
                        'repo': '$(params.repo)',
                        'event': '$(params.event)',
                    },
                },
            ],
        },
    ],
    'interceptors': [
        {'name': 'slack', 'url': 'http://slack-interceptor.default.svc/'},
    ],
}

PUSH_EVENT = {
    'head_commit': {'id': 'abc123'},
    'repository': {'name': 'widgets'},
}


class FakeCreator(ResourceCreator):
    """Records created resources in memory."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.created: list[dict[str, Any]] = []

    def create(
        self,
        doc: str,
        trigger_name: str,
        event_id: str,
        owner_name: str,
        owner_namespace: str,
        service_account: Optional[str] = None,
    ) -> None:
        if self.fail:
            raise CreationError('quota exceeded')
        self.created.append({
            'doc': doc,
            'trigger': trigger_name,
            'event_id': event_id,
            'owner_name': owner_name,
            'owner_namespace': owner_namespace,
            'service_account': service_account,
        })


class FakeSecretSource(SecretSource):
    """Secrets held in a dict: namespace -> name -> data."""

    def __init__(self, secrets: Optional[dict[str, dict[str, dict[str, str]]]] = None):
        self.secrets = secrets or {}
        self.calls: list[str] = []

    def list_secrets(self, namespace: str) -> dict[str, dict[str, str]]:
        self.calls.append(namespace)
        return copy.deepcopy(self.secrets.get(namespace, {}))


@pytest.fixture
def catalog() -> dict[str, Any]:
    """Return a fresh copy of the test catalog."""
    return copy.deepcopy(CATALOG)


@pytest.fixture
def lister(catalog: dict[str, Any]) -> Lister:
    return Lister(data=catalog)


@pytest.fixture
def creator() -> FakeCreator:
    return FakeCreator()


@pytest.fixture
def secret_source() -> FakeSecretSource:
    return FakeSecretSource({
        'default': {'github-secret': {'token': 'sekrit'}},
    })


@pytest.fixture
def secret_cache(secret_source: FakeSecretSource) -> SecretCache:
    cache = SecretCache(secret_source, namespace='default')
    cache.watch('default')
    return cache


@pytest.fixture
def registry(secret_cache: SecretCache, lister: Lister) -> InterceptorRegistry:
    registry = InterceptorRegistry(secrets=secret_cache, resolve_url=lister.get_interceptor_url)
    yield registry
    registry.close()


@pytest.fixture
def dispatcher(lister: Lister, registry: InterceptorRegistry, creator: FakeCreator) -> Dispatcher:
    return Dispatcher(
        lister=lister,
        chain=InterceptorChain(registry),
        creator=creator,
        el_name='test-listener',
        el_namespace='default',
        timeout=5.0,
    )


@pytest.fixture
def app(lister: Lister, registry: InterceptorRegistry, dispatcher: Dispatcher) -> Flask:
    """Create and configure a test Flask application.

    Returns:
        Flask application configured for testing, with in-memory services.
    """
    app = create_app(TestingConfig)
    app.extensions['lister'] = lister
    app.extensions['interceptors'] = registry
    app.extensions['dispatcher'] = dispatcher
    return app


@pytest.fixture
def client(app: Flask):
    """Create a test client for the Flask application.

    Args:
        app: Flask application fixture.

    Returns:
        Flask test client.
    """
    return app.test_client()
