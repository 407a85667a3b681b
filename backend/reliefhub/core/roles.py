"""Static caller-token to role lookup.

The directory only tags callers with a role; it performs no credential or
session verification. Unrecognized or missing tokens resolve to a fixed
low-privilege fallback identity. That fallback is a policy of this lookup
(not of the entity store) and can be switched off by building the directory
with `fallback_id=None`, in which case unknown callers resolve to `None`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from fastapi import Header, Request

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

Role = Literal["admin", "contributor"]
CALLER_HEADER = "X-User-Id"
DEFAULT_FALLBACK_ID = "citizen1"


@dataclass(frozen=True)
class Identity:
    """Resolved caller identity used to tag audit entries."""

    id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


DEFAULT_IDENTITIES: tuple[Identity, ...] = (
    Identity(id="netrunnerX", role="admin"),
    Identity(id="reliefAdmin", role="admin"),
    Identity(id="citizen1", role="contributor"),
    Identity(id="citizen2", role="contributor"),
)


class RoleDirectory:
    """Fixed mapping from caller tokens to identities."""

    def __init__(
        self,
        identities: Iterable[Identity] = DEFAULT_IDENTITIES,
        *,
        fallback_id: str | None = DEFAULT_FALLBACK_ID,
    ) -> None:
        self._identities: Mapping[str, Identity] = {item.id: item for item in identities}
        if fallback_id is not None and fallback_id not in self._identities:
            msg = f"Fallback identity {fallback_id!r} is not part of the directory."
            raise ValueError(msg)
        self._fallback_id = fallback_id

    @property
    def fallback(self) -> Identity | None:
        if self._fallback_id is None:
            return None
        return self._identities[self._fallback_id]

    def resolve_role(self, caller_token: str | None) -> Identity | None:
        """Return the identity for a token, or the fallback identity when unknown."""
        token = (caller_token or "").strip()
        identity = self._identities.get(token) if token else None
        if identity is not None:
            return identity
        return self.fallback


default_directory = RoleDirectory()


def get_caller_identity(
    request: Request,
    x_user_id: str | None = Header(default=None, alias=CALLER_HEADER),
) -> Identity | None:
    """FastAPI dependency resolving the caller from the `X-User-Id` header."""
    directory = getattr(request.app.state, "role_directory", None)
    if not isinstance(directory, RoleDirectory):
        directory = default_directory
    return directory.resolve_role(x_user_id)
