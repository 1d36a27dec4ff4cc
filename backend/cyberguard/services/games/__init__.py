"""Mini-game domain services: content, scoring and per-player sessions.

This package contains pure(ish) game logic used by the room services,
HTTP routes and socket handlers. It never writes the room document itself.
"""
from .controllers import EncryptionGame, MiniGame, NetworkDefenseGame, PasswordGame, RoundControllers
from .content import ENCRYPTION_TIME_LIMIT_SEC, PASSWORD_TIME_LIMIT_SEC


def build_mini_games(config=None):
    """Instantiate every mini-game, keyed by game type, with time limits from `config`."""
    config = config or {}
    games = [
        PasswordGame(time_limit=int(config.get('PASSWORD_TIME_LIMIT_SEC', PASSWORD_TIME_LIMIT_SEC))),
        NetworkDefenseGame(),
        EncryptionGame(time_limit=int(config.get('ENCRYPTION_TIME_LIMIT_SEC', ENCRYPTION_TIME_LIMIT_SEC))),
    ]
    return {game.game_type: game for game in games}


__all__ = [
    'EncryptionGame',
    'MiniGame',
    'NetworkDefenseGame',
    'PasswordGame',
    'RoundControllers',
    'build_mini_games',
]
