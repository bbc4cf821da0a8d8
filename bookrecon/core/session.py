"""Explicit session object handed to API clients.

Authentication itself happens elsewhere; this only carries what a request
needs to be attributed to the signed-in user.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from bookrecon.config import get_config


@dataclass(frozen=True, slots=True)
class ApiSession:
    base_url: str
    auth_token: str | None = None
    user_email: str | None = None
    cookies: dict[str, str] = field(default_factory=dict)

    @classmethod
    def anonymous(cls, base_url: str | None = None) -> ApiSession:
        return cls(base_url=(base_url or get_config().api.base_url).rstrip("/"))

    @property
    def is_authenticated(self) -> bool:
        return bool(self.auth_token or self.cookies)

    def headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers
