"""
Secrets reference provider.

The signing credential may be configured as a reference ("env:VAR_NAME")
instead of a raw value, so config files and logs only ever hold the
reference. Values without a known provider prefix are taken literally.
"""

from __future__ import annotations

import os
from typing import Mapping, Protocol


class SecretsProvider(Protocol):
    """Protocol for resolving secret references to values."""

    def get(self, ref: str) -> str | None: ...

    def supports(self, ref: str) -> bool: ...


class EnvSecretsProvider:
    """
    Resolve secrets from environment variables.

    Reference format: "env:VAR_NAME"
    Example: "env:YAMO_KEY" resolves to environ["YAMO_KEY"]
    """

    PREFIX = "env:"

    def __init__(self, environ: Mapping[str, str] | None = None):
        self.environ = os.environ if environ is None else environ

    def supports(self, ref: str) -> bool:
        return ref.startswith(self.PREFIX)

    def get(self, ref: str) -> str | None:
        if not self.supports(ref):
            return None
        return self.environ.get(ref[len(self.PREFIX) :]) or None


class CompositeSecretsProvider:
    """Try each provider in order until one returns a value."""

    def __init__(self, providers: list[SecretsProvider] | None = None):
        self.providers = providers or [EnvSecretsProvider()]

    def supports(self, ref: str) -> bool:
        return any(p.supports(ref) for p in self.providers)

    def get(self, ref: str) -> str | None:
        for provider in self.providers:
            if provider.supports(ref):
                value = provider.get(ref)
                if value is not None:
                    return value
        return None


def resolve_secret(value: str, provider: SecretsProvider | None = None) -> str | None:
    """
    Resolve a possibly-referenced secret.

    Returns the referenced value, None for an unresolvable reference, or
    the input itself when it is not a reference.
    """
    provider = provider or CompositeSecretsProvider()
    if provider.supports(value):
        return provider.get(value)
    return value
