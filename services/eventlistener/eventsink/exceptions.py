"""Exceptions raised while resolving and dispatching triggers."""

from __future__ import annotations


class ResolutionError(Exception):
    """A failure scoped to a single trigger invocation."""


class BindingError(ResolutionError):
    """A binding reference is invalid or cannot be dereferenced."""


class TemplateNotFoundError(ResolutionError):
    """The trigger's template reference cannot be dereferenced."""


class DuplicateParamError(ResolutionError):
    """The same param name is supplied by two different bindings."""

    def __init__(self, name: str):
        super().__init__(f'duplicate param name: {name}')
        self.name = name


class ExpressionNotFoundError(ResolutionError):
    """A $(body...) / $(header...) expression has no value in the event."""


class SecretNotFoundError(LookupError):
    """A secret, or the requested key inside it, is not cached."""


class ListerError(LookupError):
    """A catalog object cannot be loaded."""


class InterceptorError(Exception):
    """An interceptor could not be reached or returned garbage."""


class CreationError(Exception):
    """A rendered resource could not be created."""
