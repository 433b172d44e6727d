"""
Authentication Module
=====================
Login orchestration for the portal.

Architecture:
    - ``AuthenticationCoordinator`` — serialized, self-healing login flow
    - ``Credentials``               — user id + encrypted secret
    - ``CredentialCodec``           — symmetric encryption contract
      (``AesCredentialCodec`` is the built-in implementation)
    - ``CredentialStore``           — stored-credential source
      (``EnvCredentialStore``, ``StaticCredentialStore``)
    - ``discovery``                 — pluggable field / submit strategies

Usage::

    from portal_agent.auth import AuthenticationCoordinator, AesCredentialCodec, Credentials

    coordinator = AuthenticationCoordinator(session, AesCredentialCodec("passphrase"))
    result = await coordinator.login(Credentials("u1", encrypted_secret))
"""

from .coordinator import AuthenticationCoordinator, classify_outcome
from .credentials import (
    AesCredentialCodec,
    CredentialCodec,
    Credentials,
    CredentialStore,
    EnvCredentialStore,
    StaticCredentialStore,
)

__all__ = [
    "AuthenticationCoordinator",
    "classify_outcome",
    "AesCredentialCodec",
    "CredentialCodec",
    "Credentials",
    "CredentialStore",
    "EnvCredentialStore",
    "StaticCredentialStore",
]
