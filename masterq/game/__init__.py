"""Single game server queries."""

from __future__ import annotations

from masterq.game.server import DEFAULT_GAME_PORT, GameServer

__all__ = [
    "DEFAULT_GAME_PORT",
    "GameServer",
]
