"""Room document model.

Dataclasses mirroring the shared room document. `to_dict` / `from_dict`
convert to and from the stored camelCase shape; the transition table
guards the round state machine.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from cyberguard.errors import InvalidTransition, PlayerNotInRoom

WAITING = 'waiting'
PLAYING = 'playing'
ROUND_END = 'roundEnd'

TRANSITIONS = {
    WAITING: {PLAYING},
    PLAYING: {ROUND_END},
    ROUND_END: {WAITING},
}


@dataclass
class GameScore:
    time_left: int
    complexity: float
    total: float
    place: int
    completed_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timeLeft': self.time_left,
            'complexity': self.complexity,
            'total': self.total,
            'place': self.place,
            'completedAt': self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['GameScore']:
        if not data:
            return None
        return cls(
            time_left=data.get('timeLeft', 0),
            complexity=data.get('complexity', 0),
            total=data.get('total', 0),
            place=data.get('place', 0),
            completed_at=data.get('completedAt', 0.0),
        )


@dataclass
class PlayerStats:
    total_games: int = 0
    wins: int = 0
    total_score: float = 0
    best_time: int = 0
    average_place: float = 0
    total_places: int = 0

    def record(self, score: GameScore) -> None:
        """Fold one completed round into the cumulative record."""
        self.total_games += 1
        if score.place == 1:
            self.wins += 1
        self.total_score += score.total
        self.best_time = max(self.best_time, score.time_left)
        self.total_places += score.place
        self.average_place = self.total_places / self.total_games

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalGames': self.total_games,
            'wins': self.wins,
            'totalScore': self.total_score,
            'bestTime': self.best_time,
            'averagePlace': self.average_place,
            'totalPlaces': self.total_places,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PlayerStats':
        data = data or {}
        total_games = data.get('totalGames', 0)
        average_place = data.get('averagePlace', 0)
        total_places = data.get('totalPlaces')
        if total_places is None:
            # Documents written before the place sum was kept
            total_places = round(average_place * total_games)
        return cls(
            total_games=total_games,
            wins=data.get('wins', 0),
            total_score=data.get('totalScore', 0),
            best_time=data.get('bestTime', 0),
            average_place=average_place,
            total_places=total_places,
        )


@dataclass
class Player:
    id: str
    name: str
    joined_at: float
    score: Optional[GameScore] = None
    has_submitted: bool = False
    stats: PlayerStats = field(default_factory=PlayerStats)

    def clear_round(self) -> None:
        self.score = None
        self.has_submitted = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'joinedAt': self.joined_at,
            'score': self.score.to_dict() if self.score else None,
            'hasSubmitted': self.has_submitted,
            'stats': self.stats.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Player':
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            joined_at=data.get('joinedAt', 0.0),
            score=GameScore.from_dict(data.get('score')),
            has_submitted=bool(data.get('hasSubmitted', False)),
            stats=PlayerStats.from_dict(data.get('stats')),
        )


@dataclass(frozen=True)
class RoundSummary:
    round: int
    game_type: str
    winners: tuple
    scores: tuple  # (player_id, score dict) pairs, submission order

    def to_dict(self) -> Dict[str, Any]:
        return {
            'round': self.round,
            'gameType': self.game_type,
            'winners': list(self.winners),
            'scores': {pid: dict(score) for pid, score in self.scores},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RoundSummary':
        return cls(
            round=data.get('round', 0),
            game_type=data.get('gameType'),
            winners=tuple(data.get('winners', [])),
            scores=tuple((pid, dict(score)) for pid, score in (data.get('scores') or {}).items()),
        )


@dataclass
class GameState:
    type: Optional[str] = None
    round: int = 0
    status: str = WAITING
    start_time: Optional[float] = None
    deadline: Optional[float] = None
    round_history: List[RoundSummary] = field(default_factory=list)

    def transition(self, new_status: str) -> None:
        if new_status not in TRANSITIONS.get(self.status, set()):
            raise InvalidTransition(f'Cannot move from {self.status} to {new_status}')
        self.status = new_status

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'round': self.round,
            'status': self.status,
            'startTime': self.start_time,
            'deadline': self.deadline,
            'roundHistory': [entry.to_dict() for entry in self.round_history],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'GameState':
        data = data or {}
        return cls(
            type=data.get('type'),
            round=data.get('round', 0),
            status=data.get('status', WAITING),
            start_time=data.get('startTime'),
            deadline=data.get('deadline'),
            round_history=[RoundSummary.from_dict(e) for e in data.get('roundHistory') or []],
        )


@dataclass
class Room:
    id: str
    name: str
    password: str
    creator_id: Optional[str] = None
    players: List[Player] = field(default_factory=list)
    game_state: GameState = field(default_factory=GameState)
    all_submitted: bool = False
    created_at: float = 0.0

    def find_player(self, player_id: str) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def require_player(self, player_id: str) -> Player:
        player = self.find_player(player_id)
        if player is None:
            raise PlayerNotInRoom()
        return player

    def recompute_all_submitted(self) -> bool:
        self.all_submitted = bool(self.players) and all(p.has_submitted for p in self.players)
        return self.all_submitted

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'password': self.password,
            'creatorId': self.creator_id,
            'players': [p.to_dict() for p in self.players],
            'gameState': self.game_state.to_dict(),
            'allSubmitted': self.all_submitted,
            'createdAt': self.created_at,
        }

    def public_dict(self) -> Dict[str, Any]:
        """Room view safe to send to any client: the join secret is left out."""
        payload = self.to_dict()
        payload.pop('password', None)
        payload['id'] = self.id
        payload['playerCount'] = len(self.players)
        return payload

    @classmethod
    def from_dict(cls, room_id: str, data: Dict[str, Any]) -> 'Room':
        return cls(
            id=room_id,
            name=data.get('name', ''),
            password=data.get('password', ''),
            creator_id=data.get('creatorId'),
            players=[Player.from_dict(p) for p in data.get('players') or []],
            game_state=GameState.from_dict(data.get('gameState')),
            all_submitted=bool(data.get('allSubmitted', False)),
            created_at=data.get('createdAt', 0.0),
        )
