"""Resolve the calling actor from headers set by the upstream auth provider."""

from __future__ import annotations

import os
from typing import Optional

from fastapi import Header

from ..domain.identity import Actor, ActorKind, parse_actor_kind
from ..errors import AuthenticationRequired, ValidationFailure


class AuthConfig:
    """Header-trust configuration."""

    def __init__(self):
        # Local development can run without a proxy by naming a fallback actor.
        self.default_actor_id = os.getenv("TASKBOARD_DEFAULT_ACTOR_ID", "").strip() or None
        self.default_role = os.getenv("TASKBOARD_DEFAULT_ROLE", "admin")


auth_config = AuthConfig()


def resolve_actor(actor_id: Optional[str], kind: Optional[str], role: Optional[str]) -> Actor:
    """Build an :class:`Actor` from raw header values.

    Raises:
        AuthenticationRequired: when no actor id is present and no default is configured.
        ValidationFailure: when the actor kind is not Admin or Startup.
    """
    resolved_id = (actor_id or "").strip() or auth_config.default_actor_id
    if not resolved_id:
        raise AuthenticationRequired("Actor identity is required")
    try:
        actor_kind = parse_actor_kind(kind, ActorKind.ADMIN)
    except ValueError:
        raise ValidationFailure(
            "X-Actor-Kind must be Admin or Startup", details={"field": "X-Actor-Kind", "value": kind}
        ) from None
    return Actor(id=resolved_id, kind=actor_kind, role=(role or auth_config.default_role).strip())


async def current_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_kind: Optional[str] = Header(None),
    x_actor_role: Optional[str] = Header(None),
) -> Actor:
    """FastAPI dependency returning the authenticated actor."""
    return resolve_actor(x_actor_id, x_actor_kind, x_actor_role)
