import math
from typing import List, NamedTuple, Optional, Sequence

from .content import (
    ENCRYPTION_CHALLENGES,
    PASSWORD_BONUSES,
    PASSWORD_REQUIREMENTS,
    Challenge,
    PasswordBonus,
    PasswordRule,
    Question,
)

STREAK_MULTIPLIER = 1.5
STREAK_THRESHOLD = 2
ENCRYPTION_STREAK_BONUS = 25


class ScoreResult(NamedTuple):
    """Outcome of one player's round, before place and timestamp are assigned."""
    passed: bool
    time_left: int
    complexity: float
    total: float


class AnswerResult(NamedTuple):
    correct: bool
    points: float
    streak: int


def requirement_statuses(password: str, requirements: Sequence[PasswordRule] = PASSWORD_REQUIREMENTS) -> List[dict]:
    return [{'id': r.id, 'text': r.text, 'met': bool(r.check(password))} for r in requirements]


def requirements_met(password: str, requirements: Sequence[PasswordRule] = PASSWORD_REQUIREMENTS) -> bool:
    return all(r.check(password) for r in requirements)


def password_complexity(password: str, bonuses: Sequence[PasswordBonus] = PASSWORD_BONUSES) -> int:
    """Sum of the bonus points the password earns."""
    return sum(b.points for b in bonuses if b.check(password))


def score_password(
    password: str,
    time_left: int,
    requirements: Sequence[PasswordRule] = PASSWORD_REQUIREMENTS,
    bonuses: Sequence[PasswordBonus] = PASSWORD_BONUSES,
) -> ScoreResult:
    """Score a password submission.

    Requirements gate the submission; a password failing any of them
    earns no complexity. total = time_left + complexity.
    """
    passed = requirements_met(password, requirements)
    complexity = password_complexity(password, bonuses) if passed else 0
    return ScoreResult(passed, time_left, complexity, time_left + complexity)


def score_network_answer(question: Question, answer_index: Optional[int], time_left: int, streak: int) -> AnswerResult:
    """Score one quiz answer.

    A correct answer within the time limit earns points + time_left*10,
    multiplied by 1.5 when the streak before this answer is at least 2.
    A wrong answer or a timeout (answer_index None or time_left <= 0)
    earns nothing and resets the streak.
    """
    if answer_index is None or time_left <= 0 or answer_index != question.correct:
        return AnswerResult(False, 0, 0)
    points = question.points + time_left * 10
    if streak >= STREAK_THRESHOLD:
        points = points * STREAK_MULTIPLIER
    return AnswerResult(True, points, streak + 1)


def normalize_answer(text: str) -> str:
    return (text or '').strip().upper()


def score_encryption_answer(challenge: Challenge, answer: str, time_left: int, streak: int) -> AnswerResult:
    """Score a decryption attempt: points + floor(time_left/10) + streak*25 when correct."""
    if normalize_answer(answer) != normalize_answer(challenge.correct_answer):
        return AnswerResult(False, 0, 0)
    points = challenge.points + math.floor(time_left / 10) + streak * ENCRYPTION_STREAK_BONUS
    return AnswerResult(True, points, streak + 1)


def challenge_for_round(round_number: int, challenges: Sequence[Challenge] = ENCRYPTION_CHALLENGES) -> Challenge:
    return challenges[max(0, round_number - 1) % len(challenges)]
