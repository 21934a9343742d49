"""Authenticator interface and the scheme registry.

Learn: Each credential scheme ("User-Ref-Token", "Share-Code") has one
Authenticator. The registry is built once when the coordinator starts
and dispatches on the scheme name:

    token = await registry.authenticate("User-Ref-Token", token_id)

Unknown schemes are rejected, never routed to a fallback.
"""

from abc import ABC, abstractmethod
from typing import Iterable

from refauth.auth.tokens import AuthToken
from refauth.errors import UnauthorizedError


class Authenticator(ABC):
    """Resolves one credential scheme to an identity token."""

    @property
    @abstractmethod
    def scheme(self) -> str:
        """Scheme name, e.g. 'User-Ref-Token'."""

    @abstractmethod
    async def authenticate(self, value: str) -> AuthToken:
        """Validate ``value`` and return its token.

        Must raise UnauthorizedError when the credential is unknown or expired.
        """


class TokenRegistry:
    """Fixed mapping of scheme name to authenticator."""

    def __init__(self, authenticators: Iterable[Authenticator]):
        self._by_scheme: dict[str, Authenticator] = {}
        for authenticator in authenticators:
            if authenticator.scheme in self._by_scheme:
                raise ValueError(f"Duplicate auth type {authenticator.scheme}")
            self._by_scheme[authenticator.scheme] = authenticator

    def get(self, scheme: str) -> Authenticator:
        authenticator = self._by_scheme.get(scheme)
        if authenticator is None:
            raise UnauthorizedError(f"Unknown auth type {scheme}")
        return authenticator

    def schemes(self) -> list[str]:
        return sorted(self._by_scheme)

    async def authenticate(self, scheme: str, value: str) -> AuthToken:
        return await self.get(scheme).authenticate(value)
