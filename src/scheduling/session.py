"""Session context handed to the event store gateway.

The auth provider owns login and token refresh; the engine only receives a
reference to the resulting session and asks it for request headers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class CredentialSource(Protocol):
    """Anything that can authenticate a request to the event store."""

    def auth_headers(self) -> dict[str, str]: ...


@dataclass(frozen=True)
class SessionContext:
    """Authenticated user session issued by the auth provider."""

    user_id: str
    access_token: str
    token_type: str = "Bearer"

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"{self.token_type} {self.access_token}"}

    def __repr__(self) -> str:
        return f"SessionContext(user_id={self.user_id!r}, token_type={self.token_type!r})"
