"""
Secret Cache - namespace-scoped cached lookup of credential material.

Secrets are loaded per namespace from a SecretSource by a background resync
thread. Lookups never touch the network: the cache holds one dict keyed by
``namespace/name`` that the refresh replaces wholesale, so readers only ever
see a complete snapshot and take no lock.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

import redis
from redis.exceptions import RedisError

from eventsink.exceptions import SecretNotFoundError
from eventsink.models.interceptor import SecretRef

logger = logging.getLogger(__name__)

SecretData = dict[str, str]


class SecretSource(ABC):
    """Where secrets are listed from."""

    @abstractmethod
    def list_secrets(self, namespace: str) -> dict[str, SecretData]:
        """Return every secret in a namespace as name -> {key: value}."""


class RedisSecretSource(SecretSource):
    """Secrets stored as Redis hashes named ``secret:<namespace>:<name>``."""

    KEY_PREFIX = "secret"

    def __init__(self, client: redis.Redis):
        self.client = client

    def list_secrets(self, namespace: str) -> dict[str, SecretData]:
        prefix = f"{self.KEY_PREFIX}:{namespace}:"
        secrets = {}
        try:
            for key in self.client.scan_iter(match=f"{prefix}*"):
                name = key[len(prefix):]
                secrets[name] = dict(self.client.hgetall(key))
        except RedisError as e:
            logger.error(f"Failed to list secrets in namespace {namespace}: {e}")
            raise
        return secrets


class SecretCache:
    """
    Read-through secret cache refreshed by a background thread.

    Namespaces are watched explicitly with watch(), or implicitly the first
    time a lookup asks for one; an implicit watch is filled by the next
    resync, so that first lookup reports the secret as not found.
    """

    def __init__(
        self,
        source: SecretSource,
        namespace: str,
        resync_interval: float = 30.0,
    ) -> None:
        """
        Initialize the secret cache.

        Args:
            source: SecretSource listing secrets per namespace
            namespace: Default namespace for refs that do not set one
            resync_interval: Seconds between background refreshes
        """
        self.source = source
        self.namespace = namespace
        self.resync_interval = resync_interval
        self._store: dict[str, SecretData] = {}
        self._namespaces: set[str] = set()
        self._write_lock = threading.Lock()
        self._resync_thread: Optional[threading.Thread] = None
        self._stop_resync = threading.Event()

        logger.info("SecretCache initialized")

    def watch(self, namespace: str) -> None:
        """Start caching a namespace and load it synchronously."""
        with self._write_lock:
            self._namespaces.add(namespace)
        self._refresh_namespace(namespace)

    def get(self, ref: SecretRef) -> str:
        """
        Look up one data field of a cached secret.

        Args:
            ref: Secret reference; an empty namespace means the cache's own

        Returns:
            The secret value.

        Raises:
            SecretNotFoundError: If the secret or the key inside it is absent.
        """
        namespace = ref.namespace or self.namespace
        if namespace not in self._namespaces:
            with self._write_lock:
                self._namespaces.add(namespace)
            logger.info(f"Namespace {namespace} added to secret resync")

        secret = self._store.get(f"{namespace}/{ref.secret_name}")
        if secret is None:
            raise SecretNotFoundError(f"secret {namespace}/{ref.secret_name} not found")
        if ref.secret_key not in secret:
            raise SecretNotFoundError(
                f"key {ref.secret_key} not found in secret {namespace}/{ref.secret_name}"
            )
        return secret[ref.secret_key]

    def resync(self) -> None:
        """Reload every watched namespace."""
        with self._write_lock:
            namespaces = sorted(self._namespaces)
        for namespace in namespaces:
            self._refresh_namespace(namespace)

    def _refresh_namespace(self, namespace: str) -> None:
        try:
            secrets = self.source.list_secrets(namespace)
        except RedisError as e:
            logger.warning(f"Keeping cached secrets for {namespace}: {e}")
            return

        prefix = f"{namespace}/"
        with self._write_lock:
            store = {k: v for k, v in self._store.items() if not k.startswith(prefix)}
            for name, data in secrets.items():
                store[f"{prefix}{name}"] = dict(data)
            self._store = store
        logger.debug(f"Cached {len(secrets)} secrets for namespace {namespace}")

    def start(self) -> None:
        """Start background resync thread."""
        if self._resync_thread is not None and self._resync_thread.is_alive():
            logger.warning("Resync thread already running")
            return

        self._stop_resync.clear()
        self._resync_thread = threading.Thread(
            target=self._resync_loop,
            daemon=True,
            name="secret-resync"
        )
        self._resync_thread.start()
        logger.info("Started secret resync thread")

    def stop(self) -> None:
        """Stop background resync thread."""
        if self._resync_thread is None:
            return

        self._stop_resync.set()
        if self._resync_thread.is_alive():
            self._resync_thread.join(timeout=5.0)
        logger.info("Stopped secret resync thread")

    def _resync_loop(self) -> None:
        logger.info("Secret resync started")

        while not self._stop_resync.wait(timeout=self.resync_interval):
            try:
                self.resync()
            except Exception as e:
                logger.error(f"Error in secret resync: {e}", exc_info=True)

        logger.info("Secret resync stopped")
