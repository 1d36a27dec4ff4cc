"""Room synchronization core.

Owns the room lifecycle: join, round start, submissions, expiry and
reset. Every protocol step reads the room document with its version,
applies the change in memory and writes it back with compare-and-set,
retrying from a fresh read when another write got there first. A step
that leaves the document unchanged writes nothing.
"""
from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

from cyberguard.errors import (
    DocumentNotFound,
    IncorrectPassword,
    InsufficientPlayers,
    InvalidGameType,
    NotAuthorized,
    RoomFull,
    RoomNotFound,
    RoundNotInProgress,
    StoreUnavailable,
    WriteConflict,
)
from cyberguard.services.games import MiniGame, build_mini_games
from cyberguard.services.games.scoring import ScoreResult
from cyberguard.store import DocumentStore

from .state import PLAYING, ROUND_END, WAITING, GameScore, Player, Room, RoundSummary

logger = logging.getLogger(__name__)

ROOMS = 'rooms'


def generate_player_id() -> str:
    return uuid.uuid4().hex[:9]


class RoomSync:
    def __init__(
        self,
        store: DocumentStore,
        games: Optional[Dict[str, MiniGame]] = None,
        clock: Callable[[], float] = time.time,
        max_players: int = 8,
        min_players: int = 2,
        max_retries: int = 5,
    ):
        self.store = store
        self.games = games if games is not None else build_mini_games()
        self.clock = clock
        self.max_players = max_players
        self.min_players = min_players
        self.max_retries = max_retries

    def init_app(self, app) -> None:
        self.max_players = int(app.config.get('MAX_PLAYERS', 8))
        self.min_players = int(app.config.get('MIN_PLAYERS', 2))
        self.max_retries = int(app.config.get('STORE_MAX_RETRIES', 5))
        self.games = build_mini_games(app.config)
        app.extensions['room_sync'] = self

    def game(self, game_type: Optional[str]) -> MiniGame:
        game = self.games.get(game_type) if game_type else None
        if game is None:
            raise InvalidGameType(f'Unknown game type: {game_type}')
        return game

    # ---- reads ----

    def _load(self, room_id: str) -> Tuple[Room, int, Dict[str, Any]]:
        try:
            doc = self.store.get_versioned(ROOMS, room_id)
        except DocumentNotFound:
            raise RoomNotFound()
        return Room.from_dict(room_id, doc.data), doc.version, doc.data

    def get_room(self, room_id: str) -> Room:
        return self._load(room_id)[0]

    def get_active_room(self, room_id: str) -> Room:
        room = self.get_room(room_id)
        if room.game_state.status != PLAYING:
            raise RoundNotInProgress()
        return room

    def list_rooms(self) -> List[Dict[str, Any]]:
        return [Room.from_dict(doc_id, data).public_dict() for doc_id, data in self.store.list_documents(ROOMS)]

    # ---- writes ----

    def _mutate(self, room_id: str, action: str, mutator: Callable[[Room], Any]) -> Tuple[Room, Any]:
        for attempt in range(1, self.max_retries + 1):
            room, version, original = self._load(room_id)
            outcome = mutator(room)
            updated = room.to_dict()
            if updated == original:
                return room, outcome
            try:
                self.store.compare_and_set(ROOMS, room_id, updated, version)
            except WriteConflict:
                logger.info(f"[cas-retry] room={room_id} action={action} attempt={attempt}")
                continue
            except DocumentNotFound:
                raise RoomNotFound()
            return room, outcome
        logger.warning(f"[cas-exhausted] room={room_id} action={action} attempts={self.max_retries}")
        raise StoreUnavailable('Too many concurrent updates, please try again')

    def create_room(self, name: str, password: str) -> str:
        room = Room(id='', name=name, password=password, created_at=self.clock())
        room_id = self.store.create_document(ROOMS, room.to_dict())
        logger.info(f"[room-create] room={room_id} name={name!r}")
        return room_id

    def delete_room(self, room_id: str) -> None:
        try:
            self.store.delete_document(ROOMS, room_id)
        except DocumentNotFound:
            raise RoomNotFound()
        logger.info(f"[room-delete] room={room_id}")

    def join(self, room_id: str, name: str, password: str) -> str:
        """Add a player to the room and return the new player id.

        The first player to join an empty room becomes its creator in the
        same write.
        """
        def mutator(room: Room) -> Player:
            if password != room.password:
                raise IncorrectPassword()
            if len(room.players) >= self.max_players:
                raise RoomFull()
            player_id = generate_player_id()
            while room.find_player(player_id) is not None:
                player_id = generate_player_id()
            player = Player(id=player_id, name=name, joined_at=self.clock())
            if not room.players:
                room.creator_id = player_id
            room.players.append(player)
            room.recompute_all_submitted()
            return player

        room, player = self._mutate(room_id, 'join', mutator)
        logger.info(
            f"[join] room={room_id} player={player.id} players={len(room.players)} "
            f"creator={room.creator_id == player.id}"
        )
        return player.id

    def start_round(self, room_id: str, caller_id: Optional[str], game_type: str) -> Room:
        def mutator(room: Room) -> None:
            if caller_id is None or caller_id != room.creator_id:
                raise NotAuthorized()
            if len(room.players) < self.min_players:
                raise InsufficientPlayers(f'Need at least {self.min_players} players to start')
            game = self.game(game_type)
            state = room.game_state
            state.transition(PLAYING)
            for player in room.players:
                player.clear_round()
            now = self.clock()
            state.type = game_type
            state.round += 1
            state.start_time = now
            state.deadline = now + game.round_duration()
            room.all_submitted = False

        room, _ = self._mutate(room_id, 'start', mutator)
        logger.info(
            f"[round-start] room={room_id} round={room.game_state.round} type={game_type} "
            f"deadline={room.game_state.deadline}"
        )
        return room

    def _record(self, room: Room, player: Player, result: ScoreResult, now: float) -> GameScore:
        # Place is the submission order within the round, not the score order
        place = sum(1 for p in room.players if p.score is not None) + 1
        score = GameScore(
            time_left=result.time_left,
            complexity=result.complexity,
            total=result.total,
            place=place,
            completed_at=now,
        )
        player.score = score
        player.has_submitted = True
        player.stats.record(score)
        return score

    def _end_round(self, room: Room) -> None:
        state = room.game_state
        scored = [p for p in room.players if p.score is not None]
        state.round_history.append(RoundSummary(
            round=state.round,
            game_type=state.type,
            winners=tuple(p.id for p in scored if p.score.place == 1),
            scores=tuple((p.id, p.score.to_dict()) for p in scored),
        ))
        state.transition(ROUND_END)

    def submit(self, room_id: str, player_id: str, result: ScoreResult) -> Optional[GameScore]:
        """Record a player's result for the current round.

        Returns the assigned GameScore, or None when the player had already
        submitted this round (the call is ignored).
        """
        def mutator(room: Room) -> Optional[GameScore]:
            player = room.require_player(player_id)
            if player.has_submitted:
                return None
            if room.game_state.status != PLAYING:
                raise RoundNotInProgress()
            score = self._record(room, player, result, self.clock())
            if room.recompute_all_submitted():
                self._end_round(room)
            return score

        room, score = self._mutate(room_id, 'submit', mutator)
        if score is None:
            logger.info(f"[submit-ignored] room={room_id} player={player_id} already submitted")
            return None
        logger.info(
            f"[submit] room={room_id} player={player_id} place={score.place} total={score.total} "
            f"all_submitted={room.all_submitted}"
        )
        if room.game_state.status == ROUND_END:
            logger.info(f"[round-end] room={room_id} round={room.game_state.round}")
        return score

    def expire_round(self, room_id: str, fallback: Callable[[Player], ScoreResult], now: Optional[float] = None) -> bool:
        """End the round once its deadline passed.

        Players who have not submitted get `fallback(player)` recorded, in
        join order, in a single write. Returns False when the room is not
        playing or the deadline is still ahead.
        """
        now = self.clock() if now is None else now

        def mutator(room: Room) -> bool:
            state = room.game_state
            if state.status != PLAYING or state.deadline is None or now < state.deadline:
                return False
            for player in room.players:
                if not player.has_submitted:
                    self._record(room, player, fallback(player), now)
            if room.recompute_all_submitted():
                self._end_round(room)
            return True

        room, applied = self._mutate(room_id, 'expire', mutator)
        if applied:
            logger.info(f"[round-expire] room={room_id} round={room.game_state.round}")
        return applied

    def reset_round(self, room_id: str, caller_id: Optional[str] = None, expected_round: Optional[int] = None) -> Tuple[Room, bool]:
        """Return a finished round's room to its lobby.

        Automatic when `caller_id` is None, otherwise creator-only. Resets
        of a room that is not at round end (or is past `expected_round`) are
        no-ops, so duplicate resets are harmless. Returns the room and
        whether this call reset it.
        """
        def mutator(room: Room) -> bool:
            if caller_id is not None and caller_id != room.creator_id:
                raise NotAuthorized()
            state = room.game_state
            if state.status != ROUND_END:
                return False
            if expected_round is not None and state.round != expected_round:
                return False
            for player in room.players:
                player.clear_round()
            state.transition(WAITING)
            state.round += 1
            state.start_time = None
            state.deadline = None
            room.recompute_all_submitted()
            return True

        room, applied = self._mutate(room_id, 'reset', mutator)
        if applied:
            logger.info(f"[round-reset] room={room_id} round={room.game_state.round}")
        return room, applied
