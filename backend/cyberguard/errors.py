"""Error taxonomy shared by the store adapter, the room services and the API.

Every error carries the HTTP status and machine-readable code the API
answers with, so handlers can raise and let the blueprint serialize.
"""


class CyberGuardError(Exception):
    status_code = 400
    code = 'error'
    message = 'Request failed'

    def __init__(self, message=None, **details):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details

    def to_dict(self):
        payload = {'error': self.message, 'code': self.code}
        payload.update(self.details)
        return payload


# ---- Store adapter ----

class StoreUnavailable(CyberGuardError):
    status_code = 503
    code = 'store_unavailable'
    message = 'The game server is unavailable, please try again'


class DocumentNotFound(CyberGuardError):
    status_code = 404
    code = 'document_not_found'
    message = 'Document not found'


class WriteConflict(CyberGuardError):
    status_code = 409
    code = 'write_conflict'
    message = 'Document was modified concurrently'


# ---- Room protocols ----

class RoomNotFound(CyberGuardError):
    status_code = 404
    code = 'room_not_found'
    message = 'Room not found'


class IncorrectPassword(CyberGuardError):
    status_code = 403
    code = 'incorrect_password'
    message = 'Incorrect password'


class RoomFull(CyberGuardError):
    status_code = 409
    code = 'room_full'
    message = 'Room is full'


class PlayerNotInRoom(CyberGuardError):
    status_code = 404
    code = 'player_not_in_room'
    message = 'You are not a player in this room'


class NotAuthorized(CyberGuardError):
    status_code = 403
    code = 'not_authorized'
    message = 'Only the room creator may do this'


class InsufficientPlayers(CyberGuardError):
    status_code = 400
    code = 'insufficient_players'
    message = 'Need at least 2 players to start'


class InvalidGameType(CyberGuardError):
    status_code = 400
    code = 'invalid_game_type'
    message = 'Unknown game type'


class InvalidTransition(CyberGuardError):
    status_code = 409
    code = 'invalid_transition'
    message = 'The room cannot move to that state now'


class RoundNotInProgress(CyberGuardError):
    status_code = 409
    code = 'round_not_in_progress'
    message = 'No round is being played in this room'


# ---- Mini-games ----

class RequirementsNotMet(CyberGuardError):
    status_code = 400
    code = 'requirements_not_met'
    message = 'Password does not meet every requirement'


class InvalidAnswer(CyberGuardError):
    status_code = 400
    code = 'invalid_answer'
    message = 'Answer is not in the expected format'
