"""Maps interceptor specs to interceptor implementations."""

from __future__ import annotations

import logging
from typing import Callable, Optional

import httpx

from eventsink.exceptions import InterceptorError
from eventsink.interceptors import Interceptor
from eventsink.interceptors.bitbucket import BitbucketInterceptor
from eventsink.interceptors.debug import DebugInterceptor
from eventsink.interceptors.github import GitHubInterceptor
from eventsink.interceptors.gitlab import GitLabInterceptor
from eventsink.interceptors.policy import PolicyInterceptor
from eventsink.interceptors.remote import RemoteInterceptor
from eventsink.interceptors.results import ResultsInterceptor
from eventsink.interceptors.slack import SlackInterceptor
from eventsink.interceptors.webhook import INTERCEPTOR_TIMEOUT, WebhookInterceptor
from eventsink.models.interceptor import InterceptorSpec, RefInterceptorSpec
from eventsink.services.messaging import MessagingService
from eventsink.services.secrets import SecretCache

logger = logging.getLogger(__name__)


class InterceptorRegistry:
    """
    In-process interceptors by kind, plus remote interceptors by name.

    A ``ref`` spec is looked up with resolve_url first; a name with no
    registered URL falls back to the in-process interceptor of that name.
    """

    def __init__(
        self,
        secrets: Optional[SecretCache] = None,
        messaging: Optional[MessagingService] = None,
        resolve_url: Optional[Callable[[str], str]] = None,
        client: Optional[httpx.Client] = None,
        timeout: float = INTERCEPTOR_TIMEOUT,
    ) -> None:
        """
        Initialize the registry.

        Args:
            secrets: Secret cache for the signature checking interceptors
            messaging: Messaging service for the results interceptor
            resolve_url: Maps an interceptor name to the URL serving it
            client: HTTP client shared by webhook and remote interceptors
            timeout: Seconds each outbound interceptor call may take
        """
        self.resolve_url = resolve_url
        self.client = client or httpx.Client()
        self.timeout = timeout
        self._builtin: dict[str, Interceptor] = {}
        for interceptor in (
            DebugInterceptor(),
            PolicyInterceptor(),
            ResultsInterceptor(messaging),
            GitHubInterceptor(secrets),
            GitLabInterceptor(secrets),
            BitbucketInterceptor(secrets),
            SlackInterceptor(secrets),
            WebhookInterceptor(self.client, timeout),
        ):
            self._builtin[interceptor.name] = interceptor

    @property
    def names(self) -> list[str]:
        """Names of the in-process interceptors, sorted."""
        return sorted(self._builtin)

    def get(self, name: str) -> Interceptor:
        """In-process interceptor by name.

        Raises:
            InterceptorError: If no such interceptor exists.
        """
        try:
            return self._builtin[name]
        except KeyError:
            raise InterceptorError(f'interceptor {name} not found') from None

    def for_spec(self, spec: InterceptorSpec) -> Interceptor:
        """Interceptor implementing a trigger's interceptor entry.

        Raises:
            InterceptorError: If a referenced interceptor cannot be found.
        """
        if not isinstance(spec, RefInterceptorSpec):
            return self.get(spec.kind)

        if self.resolve_url is not None:
            try:
                url = self.resolve_url(spec.name)
            except LookupError as e:
                logger.debug(f"No URL registered for interceptor {spec.name}: {e}")
            else:
                return RemoteInterceptor(spec.name, url, self.client, self.timeout)
        return self.get(spec.name)

    def close(self) -> None:
        """Close the shared HTTP client."""
        self.client.close()
