"""
Platera Backend — Identity Provider Interface
=============================================

What:  Abstract interface for the external identity provider.
How:   Account resolution and the request dependencies depend on this
       interface; ClerkIdentityProvider is the production implementation and
       tests substitute in-memory fakes.

Contract:
    authenticate(token)        → external user id, or None when the token is
                                 missing, malformed, expired or forged
    fetch_profile(external_id) → IdentityProfile, or None when the provider
                                 has no such user
    health_check()             → True when the provider is reachable
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class IdentityProfile:
    """Profile fields copied onto the local User row."""

    external_id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None


class IdentityProvider(ABC):

    @abstractmethod
    def authenticate(self, token: Optional[str]) -> Optional[str]:
        """
        Resolve an opaque session token to a stable external user id.

        Absence is not an error: every failure mode returns None.
        """
        ...

    @abstractmethod
    async def fetch_profile(self, external_id: str) -> Optional[IdentityProfile]:
        """
        Load email, names and avatar for `external_id`.

        Raises:
            IdentityProviderError: provider unreachable after retries
            CircuitBreakerOpenError: too many recent provider failures
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        ...

    async def aclose(self) -> None:
        """Release network resources; called at application shutdown."""
