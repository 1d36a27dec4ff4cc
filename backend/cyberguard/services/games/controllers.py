"""Mini-game controllers.

`MiniGame` is the interface the room services depend on; each variant
hands out a `GameSession` per player per round. `RoundControllers` keeps
those sessions and submits each player's result exactly once.
"""
from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from cyberguard.errors import InvalidAnswer, RequirementsNotMet

from .content import (
    ENCRYPTION_CHALLENGES,
    ENCRYPTION_TIME_LIMIT_SEC,
    NETWORK_QUESTIONS,
    PASSWORD_BONUSES,
    PASSWORD_REQUIREMENTS,
    PASSWORD_TIME_LIMIT_SEC,
    Challenge,
    PasswordBonus,
    PasswordRule,
    Question,
)
from .scoring import (
    ScoreResult,
    challenge_for_round,
    requirement_statuses,
    score_encryption_answer,
    score_network_answer,
    score_password,
)

logger = logging.getLogger(__name__)


def seconds_left(time_limit: int, started_at: float, now: float) -> int:
    """Whole seconds left on a countdown that ticks once per second."""
    return max(0, time_limit - int(now - started_at))


class GameSession(ABC):
    """One player's progress through the current round."""

    def __init__(self, started_at: float):
        self.started_at = started_at
        self.result: Optional[ScoreResult] = None
        self.reported = False
        self.lock = threading.Lock()

    @property
    def finished(self) -> bool:
        return self.result is not None

    def carried_streak(self) -> Optional[int]:
        """Streak to hand to the player's next session of the same game, if any."""
        return None

    @abstractmethod
    def play(self, payload: Dict[str, Any], now: float) -> Dict[str, Any]:
        ...

    @abstractmethod
    def expire(self, now: float) -> ScoreResult:
        """Result to record when the round deadline passes first."""

    @abstractmethod
    def view(self, now: float) -> Dict[str, Any]:
        ...


class MiniGame(ABC):
    game_type: str = ''
    title: str = ''
    description: str = ''

    @abstractmethod
    def round_duration(self) -> int:
        ...

    @abstractmethod
    def content(self, round_number: int) -> Dict[str, Any]:
        """Content shown to players; answers are never included."""

    @abstractmethod
    def new_session(self, started_at: float, round_number: int, streak: int = 0) -> GameSession:
        ...

    def describe(self) -> Dict[str, Any]:
        return {
            'type': self.game_type,
            'title': self.title,
            'description': self.description,
            'duration': self.round_duration(),
        }


# ---- Password challenge ----

class PasswordSession(GameSession):
    def __init__(self, game: 'PasswordGame', started_at: float):
        super().__init__(started_at)
        self.game = game

    def time_left(self, now: float) -> int:
        return seconds_left(self.game.time_limit, self.started_at, now)

    def play(self, payload, now):
        if self.finished:
            return {'accepted': False}
        password = str(payload.get('password') or '')
        time_left = self.time_left(now)
        if time_left <= 0:
            self.result = self.expire(now)
            return {'accepted': False, 'timedOut': True}
        statuses = requirement_statuses(password, self.game.requirements)
        if not all(s['met'] for s in statuses):
            raise RequirementsNotMet(requirements=statuses)
        self.result = score_password(password, time_left, self.game.requirements, self.game.bonuses)
        return {'accepted': True, 'complexity': self.result.complexity, 'total': self.result.total}

    def expire(self, now):
        return score_password('', 0, self.game.requirements, self.game.bonuses)

    def view(self, now):
        return {'timeLeft': 0 if self.finished else self.time_left(now), 'finished': self.finished}


class PasswordGame(MiniGame):
    game_type = 'password'
    title = 'Password Challenge'
    description = 'Create secure passwords meeting requirements'

    def __init__(
        self,
        time_limit: int = PASSWORD_TIME_LIMIT_SEC,
        requirements: Sequence[PasswordRule] = PASSWORD_REQUIREMENTS,
        bonuses: Sequence[PasswordBonus] = PASSWORD_BONUSES,
    ):
        self.time_limit = time_limit
        self.requirements = requirements
        self.bonuses = bonuses

    def round_duration(self):
        return self.time_limit

    def content(self, round_number):
        return {
            'requirements': [{'id': r.id, 'text': r.text} for r in self.requirements],
            'bonuses': [{'text': b.text, 'points': b.points} for b in self.bonuses],
            'timeLimit': self.time_limit,
        }

    def new_session(self, started_at, round_number, streak=0):
        return PasswordSession(self, started_at)


# ---- Network defense quiz ----

class NetworkSession(GameSession):
    def __init__(self, game: 'NetworkDefenseGame', started_at: float):
        super().__init__(started_at)
        self.game = game
        self.index = 0
        self.streak = 0
        self.score: float = 0
        self.last_time_left = 0
        self.question_started_at = started_at
        self.answers = []

    @property
    def questions(self) -> Sequence[Question]:
        return self.game.questions

    def _skip_timeouts(self, now: float) -> None:
        # Questions whose own limit ran out count as unanswered
        while self.index < len(self.questions):
            question = self.questions[self.index]
            if now - self.question_started_at < question.time_limit:
                break
            self.answers.append({'id': question.id, 'correct': False, 'points': 0, 'timedOut': True})
            self.streak = 0
            self.last_time_left = 0
            self.question_started_at += question.time_limit
            self.index += 1

    def _finish(self, time_left: int) -> None:
        self.result = ScoreResult(self.index >= len(self.questions), time_left, self.score, self.score)

    def play(self, payload, now):
        if self.finished:
            return {'correct': False, 'score': self.score}
        self._skip_timeouts(now)
        if self.index >= len(self.questions):
            self._finish(self.last_time_left)
            return {'correct': False, 'timedOut': True, 'score': self.score}

        question = self.questions[self.index]
        time_left = seconds_left(question.time_limit, self.question_started_at, now)
        answer_index = payload.get('answer_index')
        if answer_index is not None:
            try:
                answer_index = int(answer_index)
            except (TypeError, ValueError):
                raise InvalidAnswer('answer_index must be a number')
        outcome = score_network_answer(question, answer_index, time_left, self.streak)
        self.score += outcome.points
        self.streak = outcome.streak
        self.last_time_left = time_left
        self.answers.append({'id': question.id, 'correct': outcome.correct, 'points': outcome.points})
        self.index += 1
        self.question_started_at = now
        if self.index >= len(self.questions):
            self._finish(time_left)
        return {
            'correct': outcome.correct,
            'points': outcome.points,
            'streak': self.streak,
            'score': self.score,
            'questionIndex': self.index,
        }

    def expire(self, now):
        self._skip_timeouts(now)
        return ScoreResult(self.index >= len(self.questions), 0, self.score, self.score)

    def view(self, now):
        self._skip_timeouts(now)
        time_left = 0
        if not self.finished and self.index < len(self.questions):
            time_left = seconds_left(self.questions[self.index].time_limit, self.question_started_at, now)
        return {
            'questionIndex': self.index,
            'timeLeft': time_left,
            'streak': self.streak,
            'score': self.score,
            'answers': list(self.answers),
            'finished': self.finished,
        }


class NetworkDefenseGame(MiniGame):
    game_type = 'network'
    title = 'Network Defense'
    description = 'Configure firewall rules to protect systems'

    def __init__(self, questions: Sequence[Question] = NETWORK_QUESTIONS):
        self.questions = questions

    def round_duration(self):
        return sum(q.time_limit for q in self.questions)

    def content(self, round_number):
        return {
            'questions': [
                {'id': q.id, 'text': q.text, 'answers': list(q.answers), 'category': q.category,
                 'points': q.points, 'timeLimit': q.time_limit}
                for q in self.questions
            ],
        }

    def new_session(self, started_at, round_number, streak=0):
        return NetworkSession(self, started_at)


# ---- Encryption puzzle ----

class EncryptionSession(GameSession):
    def __init__(self, game: 'EncryptionGame', started_at: float, challenge: Challenge, streak: int):
        super().__init__(started_at)
        self.game = game
        self.challenge = challenge
        self.streak = streak
        self.attempts = 0

    def time_left(self, now: float) -> int:
        return seconds_left(self.game.time_limit, self.started_at, now)

    def carried_streak(self):
        return self.streak

    def play(self, payload, now):
        if self.finished:
            return {'correct': False, 'attempts': self.attempts}
        time_left = self.time_left(now)
        if time_left <= 0:
            self.result = self.expire(now)
            return {'correct': False, 'timedOut': True, 'attempts': self.attempts}
        outcome = score_encryption_answer(self.challenge, str(payload.get('answer') or ''), time_left, self.streak)
        self.streak = outcome.streak
        if not outcome.correct:
            self.attempts += 1
            return {'correct': False, 'attempts': self.attempts, 'message': 'Incorrect answer. Try again!'}
        self.result = ScoreResult(True, time_left, outcome.points, outcome.points)
        return {'correct': True, 'points': outcome.points, 'attempts': self.attempts, 'streak': self.streak}

    def expire(self, now):
        self.streak = 0
        return ScoreResult(False, 0, 0, 0)

    def view(self, now):
        return {
            'timeLeft': 0 if self.finished else self.time_left(now),
            'attempts': self.attempts,
            'streak': self.streak,
            'finished': self.finished,
        }


class EncryptionGame(MiniGame):
    game_type = 'encryption'
    title = 'Encryption Basics'
    description = 'Learn about basic encryption concepts'

    def __init__(self, time_limit: int = ENCRYPTION_TIME_LIMIT_SEC, challenges: Sequence[Challenge] = ENCRYPTION_CHALLENGES):
        self.time_limit = time_limit
        self.challenges = challenges

    def round_duration(self):
        return self.time_limit

    def content(self, round_number):
        challenge = challenge_for_round(round_number, self.challenges)
        return {
            'encryptedMessage': challenge.encrypted_message,
            'key': challenge.key,
            'hint': challenge.hint,
            'cipher': challenge.type,
            'points': challenge.points,
            'timeLimit': self.time_limit,
        }

    def new_session(self, started_at, round_number, streak=0):
        return EncryptionSession(self, started_at, challenge_for_round(round_number, self.challenges), streak)


# ---- Session registry / submission bridge ----

SessionKey = Tuple[str, int, str]


class RoundControllers:
    """Per-room game sessions and the hand-off to the room services.

    `sync` is the room synchronization service; it is the only writer of
    the room document.
    """

    def __init__(self, sync, clock: Callable[[], float] = time.time):
        self.sync = sync
        self.clock = clock
        self._sessions: Dict[SessionKey, GameSession] = {}
        self._streaks: Dict[Tuple[str, str], int] = {}
        self._lock = threading.RLock()

    def _session(self, room, player_id: str) -> GameSession:
        state = room.game_state
        key = (room.id, state.round, player_id)
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                game = self.sync.game(state.type)
                streak = self._streaks.get((room.id, player_id), 0)
                session = game.new_session(state.start_time, state.round, streak)
                self._sessions[key] = session
            return session

    def _remember_streak(self, room_id: str, player_id: str, session: GameSession) -> None:
        streak = session.carried_streak()
        if streak is None:
            return
        with self._lock:
            self._streaks[(room_id, player_id)] = streak

    def play(self, room_id: str, player_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        room = self.sync.get_active_room(room_id)
        player = room.require_player(player_id)
        if player.has_submitted:
            return {'ignored': True, 'finished': True}
        session = self._session(room, player_id)
        with session.lock:
            feedback = session.play(payload, self.clock())
            if session.finished and not session.reported:
                score = self.sync.submit(room_id, player_id, session.result)
                session.reported = True
                self._remember_streak(room_id, player_id, session)
                feedback['score'] = score.to_dict() if score else None
        feedback['finished'] = session.finished
        return feedback

    def expire(self, room_id: str) -> bool:
        """Assert the round deadline passed; unfinished players get their partial results."""
        now = self.clock()
        room = self.sync.get_room(room_id)

        def fallback(player):
            session = self._session(room, player.id)
            with session.lock:
                # A finished result whose submit failed still counts
                result = session.result if session.finished else session.expire(now)
                reported = session.reported
            if not reported:
                self._remember_streak(room_id, player.id, session)
            return result

        return self.sync.expire_round(room_id, fallback, now=now)

    def reset(self, room_id: str, caller_id: Optional[str] = None, expected_round: Optional[int] = None):
        """Reset a finished round; returns the room and whether this call reset it."""
        room, applied = self.sync.reset_round(room_id, caller_id=caller_id, expected_round=expected_round)
        self.discard(room_id, keep_round=room.game_state.round)
        return room, applied

    def delete_room(self, room_id: str) -> None:
        self.sync.delete_room(room_id)
        self.discard(room_id)

    def discard(self, room_id: str, keep_round: Optional[int] = None) -> None:
        with self._lock:
            stale = [k for k in self._sessions if k[0] == room_id and k[1] != keep_round]
            for key in stale:
                del self._sessions[key]
            if keep_round is None:
                for key in [k for k in self._streaks if k[0] == room_id]:
                    del self._streaks[key]
        if stale:
            logger.info(f"[sessions-discard] room={room_id} count={len(stale)}")

    def view(self, room_id: str, player_id: Optional[str] = None) -> Dict[str, Any]:
        room = self.sync.get_room(room_id)
        state = room.game_state
        payload: Dict[str, Any] = {'status': state.status, 'round': state.round, 'type': state.type}
        if state.type is None or state.status == 'waiting':
            payload['content'] = None
            return payload
        game = self.sync.game(state.type)
        payload['content'] = game.content(state.round)
        payload['deadline'] = state.deadline
        player = room.find_player(player_id) if player_id else None
        if player is not None and state.status == 'playing' and not player.has_submitted:
            session = self._session(room, player_id)
            with session.lock:
                payload['progress'] = session.view(self.clock())
        return payload
