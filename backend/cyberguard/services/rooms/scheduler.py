import time
from typing import Set, Tuple

from cyberguard import socketio
from cyberguard.errors import RoomNotFound
from . import room_sync, round_controllers
from .state import PLAYING, ROUND_END


_scheduled_room_keys: Set[Tuple[str, str, int]] = set()


def schedule_room_timer(app, room_id: str) -> None:
    """Schedule the automatic transition out of the room's current status.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - playing: expires the round at its deadline
    - roundEnd: returns the room to its lobby after ROUND_END_DELAY_SEC
    - Ensures a single timer per (room_id, status, round)
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    with app.app_context():
        try:
            room = room_sync.get_room(room_id)
        except RoomNotFound:
            return

        state = room.game_state
        status = state.status
        round_idx = int(state.round or 0)
        key = (room_id, status, round_idx)

        if status == PLAYING and state.deadline is not None:
            delay = max(0.0, state.deadline - time.time())
        elif status == ROUND_END:
            delay = float(app.config.get('ROUND_END_DELAY_SEC', 5))
        else:
            return

        if key in _scheduled_room_keys:
            app.logger.info(f"[timer-skip] room={room_id} status={status} round={round_idx} already scheduled")
            return

        _scheduled_room_keys.add(key)
        app.logger.info(f"[timer-set] room={room_id} status={status} round={round_idx} delay={delay:.1f}s")

    def _worker(expected_status: str, rid: str, expected_round: int, wait: float):
        # heartbeat sleep loop if enabled
        hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0) or 0)
        if hb > 0:
            slept = 0.0
            while slept < wait:
                step = min(hb, wait - slept)
                time.sleep(step)
                slept += step
                app.logger.info(
                    f"[timer-heartbeat] room={rid} status={expected_status} round={expected_round} "
                    f"remaining={max(0.0, wait - slept):.1f}s"
                )
        elif wait > 0:
            time.sleep(wait)
        with app.app_context():
            _scheduled_room_keys.discard((rid, expected_status, expected_round))
            try:
                current = room_sync.get_room(rid)
            except RoomNotFound:
                app.logger.info(f"[timer-abort] room={rid} deleted")
                return
            state = current.game_state
            app.logger.info(
                f"[timer-fire] room={rid} expected_status={expected_status} expected_round={expected_round} "
                f"actual_status={state.status} actual_round={state.round}"
            )

            if state.status != expected_status or int(state.round or 0) != expected_round:
                app.logger.info(f"[timer-abort] room={rid} mismatch status/round")
                return

            if expected_status == PLAYING:
                round_controllers.expire(rid)
            else:
                round_controllers.reset(rid, expected_round=expected_round)
            schedule_room_timer(app, rid)

    if app.config.get('TESTING'):
        _worker(status, room_id, round_idx, delay)
    else:
        socketio.start_background_task(_worker, status, room_id, round_idx, delay)
