from flask import Blueprint, jsonify, request, current_app, session
from cyberguard.errors import CyberGuardError
from cyberguard.services.games.scoring import password_complexity, requirement_statuses
from cyberguard.services.rooms import room_sync, round_controllers
from cyberguard.services.rooms.leaderboard import IN_ROUND, MODES, rows
from cyberguard.services.rooms.scheduler import schedule_room_timer
from cyberguard.services.rooms.state import ROUND_END


rooms = Blueprint('rooms', __name__)


@rooms.errorhandler(CyberGuardError)
def handle_game_error(exc):
    if exc.status_code >= 500:
        current_app.logger.error(f"[api-error] code={exc.code} path={request.path} message={exc.message}")
    else:
        current_app.logger.info(f"[api-reject] code={exc.code} path={request.path}")
    return jsonify(exc.to_dict()), exc.status_code


def _viewer_id(room_id, data=None):
    """Player id named by the request, falling back to the one remembered for this room."""
    player_id = (data or {}).get('player_id') or request.args.get('player_id')
    return player_id or session.get(f'player_{room_id}')


def _schedule(room_id):
    schedule_room_timer(current_app._get_current_object(), room_id)


@rooms.route('', methods=['POST'])
def create_room():
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    password = data.get('password')
    if not name or not password:
        return jsonify({'error': 'Room name and password are required'}), 400
    room_id = room_sync.create_room(name, password)
    return jsonify({'message': 'New room created!', 'room_id': room_id}), 201


@rooms.route('', methods=['GET'])
def list_rooms():
    return jsonify(room_sync.list_rooms())


@rooms.route('/<string:room_id>', methods=['GET'])
def get_room_state(room_id):
    room = room_sync.get_room(room_id)
    payload = room.public_dict()
    viewer_id = _viewer_id(room_id)
    payload['viewer'] = {
        'player_id': viewer_id,
        'is_member': bool(viewer_id and room.find_player(viewer_id)),
        'is_creator': bool(viewer_id and viewer_id == room.creator_id),
    }
    # Include round durations so clients can show countdowns
    payload['games'] = [game.describe() for game in room_sync.games.values()]
    return jsonify(payload)


@rooms.route('/<string:room_id>/join', methods=['POST'])
def join_room(room_id):
    data = request.get_json(silent=True) or {}
    name = data.get('name')
    password = data.get('password')
    if not name or password is None:
        return jsonify({'error': 'Player name and room password are required'}), 400

    player_id = room_sync.join(room_id, name, password)
    room = room_sync.get_room(room_id)
    is_creator = room.creator_id == player_id
    # Remembered so a reload resumes the same identity; advisory only
    session[f'player_{room_id}'] = player_id
    session[f'creator_{room_id}'] = is_creator
    return jsonify({
        'player_id': player_id,
        'is_creator': is_creator,
        'room': room.public_dict(),
    }), 201


@rooms.route('/<string:room_id>/start', methods=['POST'])
def start_round(room_id):
    data = request.get_json(silent=True) or {}
    player_id = _viewer_id(room_id, data)
    game_type = data.get('game_type')
    if not game_type:
        return jsonify({'error': 'Game type is required'}), 400

    room = room_sync.start_round(room_id, player_id, game_type)
    round_controllers.discard(room_id, keep_round=room.game_state.round)
    _schedule(room_id)
    return jsonify(room.public_dict())


@rooms.route('/<string:room_id>/game', methods=['GET'])
def get_game(room_id):
    return jsonify(round_controllers.view(room_id, _viewer_id(room_id)))


@rooms.route('/<string:room_id>/password/check', methods=['POST'])
def check_password(room_id):
    data = request.get_json(silent=True) or {}
    password = str(data.get('password') or '')
    room_sync.get_room(room_id)
    game = room_sync.game('password')
    statuses = requirement_statuses(password, game.requirements)
    return jsonify({
        'requirements': statuses,
        'all_met': all(s['met'] for s in statuses),
        'complexity': password_complexity(password, game.bonuses),
    })


@rooms.route('/<string:room_id>/answer', methods=['POST'])
def answer(room_id):
    data = request.get_json(silent=True) or {}
    player_id = _viewer_id(room_id, data)
    if not player_id:
        return jsonify({'error': 'Player ID is required'}), 400

    feedback = round_controllers.play(room_id, player_id, data)
    if feedback.get('score') and room_sync.get_room(room_id).game_state.status == ROUND_END:
        _schedule(room_id)
    return jsonify(feedback)


@rooms.route('/<string:room_id>/expire', methods=['POST'])
def expire_round(room_id):
    expired = round_controllers.expire(room_id)
    if expired:
        _schedule(room_id)
    return jsonify({'expired': expired, 'room': room_sync.get_room(room_id).public_dict()})


@rooms.route('/<string:room_id>/reset', methods=['POST'])
def reset_round(room_id):
    data = request.get_json(silent=True) or {}
    player_id = _viewer_id(room_id, data)
    if not player_id:
        return jsonify({'error': 'Player ID is required'}), 400
    room, applied = round_controllers.reset(room_id, caller_id=player_id)
    return jsonify({'reset': applied, 'room': room.public_dict()})


@rooms.route('/<string:room_id>/leaderboard', methods=['GET'])
def leaderboard(room_id):
    mode = request.args.get('mode', IN_ROUND)
    if mode not in MODES:
        return jsonify({'error': f'Mode must be one of {", ".join(MODES)}'}), 400
    room = room_sync.get_room(room_id)
    return jsonify({'mode': mode, 'players': rows(room.players, mode)})
