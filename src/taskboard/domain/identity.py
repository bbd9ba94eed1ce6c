"""Actor identities as supplied by the upstream authentication provider."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

SUPER_ADMIN_ROLE = "super_admin"


class ActorKind(str, Enum):
    """Which kind of account originated an action."""

    ADMIN = "Admin"
    STARTUP = "Startup"


def parse_actor_kind(raw: Any, default: ActorKind = ActorKind.ADMIN) -> ActorKind:
    if isinstance(raw, ActorKind):
        return raw
    if raw is None or raw == "":
        return default
    try:
        return ActorKind(str(raw))
    except ValueError:
        # Accept lower-case spellings from headers and CLI flags.
        for kind in ActorKind:
            if kind.value.lower() == str(raw).lower():
                return kind
        raise


@dataclass(frozen=True)
class ActorRef:
    """Tagged reference ``{kind, id}`` stored on records (creator, author...)."""

    kind: ActorKind
    id: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "id": self.id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActorRef":
        return cls(kind=parse_actor_kind(data.get("kind")), id=str(data.get("id") or ""))


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an operation."""

    id: str
    kind: ActorKind = ActorKind.ADMIN
    role: str = "admin"

    @property
    def ref(self) -> ActorRef:
        return ActorRef(kind=self.kind, id=self.id)

    @property
    def is_super_admin(self) -> bool:
        return self.role == SUPER_ADMIN_ROLE
