from flask_socketio import join_room, leave_room, emit
from cyberguard import socketio
from cyberguard.errors import RoomNotFound
from cyberguard.services.rooms import ROOMS, room_sync
from cyberguard.services.rooms.state import Room
from typing import Callable, Dict, Set
import logging
import threading

logger = logging.getLogger(__name__)

NAMESPACE = '/ws'


def _channel(room_id: str) -> str:
    return f"room:{room_id}"


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    # Drop every watch this socket held
    with _watch_lock:
        watched = _sid_to_rooms.pop(_get_sid(), set())
    for room_id in watched:
        _release_watch(room_id)


def handle_watch_room(data):
    room_id = (data or {}).get('room_id')
    if not room_id:
        emit('error', {'message': 'room_id is required'})
        return
    try:
        room = room_sync.get_room(room_id)
    except RoomNotFound:
        # Clients go back to the lobby on this
        emit('room_error', {'error': 'room_not_found', 'room_id': room_id})
        return
    join_room(_channel(room_id))
    sid = _get_sid()
    with _watch_lock:
        rooms_for_sid = _sid_to_rooms.setdefault(sid, set())
        first_for_sid = room_id not in rooms_for_sid
        rooms_for_sid.add(room_id)
    if first_for_sid:
        _acquire_watch(room_id)
    emit('watching', {'room': _channel(room_id)})
    emit('room_update', room.public_dict())


def handle_unwatch_room(data):
    room_id = (data or {}).get('room_id')
    if not room_id:
        emit('error', {'message': 'room_id is required'})
        return
    leave_room(_channel(room_id))
    with _watch_lock:
        rooms_for_sid = _sid_to_rooms.get(_get_sid(), set())
        was_watching = room_id in rooms_for_sid
        rooms_for_sid.discard(room_id)
    if was_watching:
        _release_watch(room_id)
    emit('unwatched', {'room': _channel(room_id)})


def handle_ping(data):
    emit('pong', data or {})

# ---- Store subscription lifecycle helpers ----
from flask import request

_watch_lock = threading.Lock()
_sid_to_rooms: Dict[str, Set[str]] = {}
_watch_count: Dict[str, int] = {}
_unsubscribers: Dict[str, Callable[[], None]] = {}

def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore

def _broadcast_room(room_id: str, data) -> None:
    """Push a committed room change to every socket watching the room."""
    if data is None:
        socketio.emit('room_error', {'error': 'room_not_found', 'room_id': room_id},
                      to=_channel(room_id), namespace=NAMESPACE)
        return
    payload = Room.from_dict(room_id, data).public_dict()
    socketio.emit('room_update', payload, to=_channel(room_id), namespace=NAMESPACE)

def _acquire_watch(room_id: str) -> None:
    with _watch_lock:
        _watch_count[room_id] = _watch_count.get(room_id, 0) + 1
        if room_id in _unsubscribers:
            return
        _unsubscribers[room_id] = room_sync.store.subscribe(ROOMS, room_id, _broadcast_room)
    logger.info(f"[watch-start] room={room_id}")

def _release_watch(room_id: str) -> None:
    with _watch_lock:
        remaining = max(0, _watch_count.get(room_id, 0) - 1)
        if remaining:
            _watch_count[room_id] = remaining
            return
        _watch_count.pop(room_id, None)
        unsubscribe = _unsubscribers.pop(room_id, None)
    if unsubscribe:
        unsubscribe()
        logger.info(f"[watch-stop] room={room_id}")


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [NAMESPACE, '/'] if testing else [NAMESPACE]
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('watch_room', handle_watch_room, namespace=namespace)
        socketio.on_event('unwatch_room', handle_unwatch_room, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
