"""Room services: the shared room document, its protocols and timers.

`room_sync` is the single writer of room documents; `round_controllers`
drives the mini-game sessions and submits through it. Both are configured
by `create_app` via `room_sync.init_app`.
"""
from cyberguard.services.games import RoundControllers
from cyberguard.store import document_store
from .sync import ROOMS, RoomSync

room_sync = RoomSync(document_store)
round_controllers = RoundControllers(room_sync)

__all__ = ['ROOMS', 'RoomSync', 'room_sync', 'round_controllers']
