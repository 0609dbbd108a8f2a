# Overview: Identity provider interface consumed by the engine to attribute sales and movements.

"""
The engine never authenticates anyone. It asks an identity provider for the
acting user and records that id / name on Sale and StockMovement rows.
"""

from __future__ import annotations

from typing import Protocol

from flask import request

from .exceptions import ValidationError


class IdentityProvider(Protocol):
    def current_actor_id(self) -> int: ...

    def current_actor_name(self) -> str: ...


class StaticIdentity:
    """Fixed actor. Used by CLI commands and tests."""

    def __init__(self, actor_id: int, actor_name: str):
        self._actor_id = actor_id
        self._actor_name = actor_name

    def current_actor_id(self) -> int:
        return self._actor_id

    def current_actor_name(self) -> str:
        return self._actor_name


class RequestIdentity:
    """
    Reads the actor from request headers set by the upstream session layer:
    X-Actor-Id (required integer) and X-Actor-Name (optional).
    """

    ID_HEADER = "X-Actor-Id"
    NAME_HEADER = "X-Actor-Name"

    def current_actor_id(self) -> int:
        raw = request.headers.get(self.ID_HEADER, "").strip()
        if not (raw.isascii() and raw.isdigit()) or int(raw) <= 0:
            raise ValidationError(f"{self.ID_HEADER} header must be a positive integer")
        return int(raw)

    def current_actor_name(self) -> str:
        name = request.headers.get(self.NAME_HEADER, "").strip()
        return name or f"user-{self.current_actor_id()}"
