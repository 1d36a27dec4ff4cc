"""Mini-game content tables.

Plain data consumed by the scoring functions. Swapping a table changes
what players see and how they are scored, not how rounds are run.
"""
import re
from typing import Callable, List, NamedTuple


class PasswordRule(NamedTuple):
    id: int
    text: str
    check: Callable[[str], bool]


class PasswordBonus(NamedTuple):
    text: str
    points: int
    check: Callable[[str], bool]


class Question(NamedTuple):
    id: int
    text: str
    answers: List[str]
    correct: int
    points: int
    category: str
    time_limit: int


class Challenge(NamedTuple):
    encrypted_message: str
    key: str
    correct_answer: str
    hint: str
    type: str
    points: int


def _has_fibonacci_step(pwd: str) -> bool:
    numbers = [int(n) for n in re.findall(r'\d+', pwd)]
    return any(numbers[i] == numbers[i - 1] + numbers[i - 2] for i in range(2, len(numbers)))


SPECIALS = '!@#$%^&*'
TRIPLE_REPEAT = re.compile(r'(.)\1\1')

PASSWORD_REQUIREMENTS = [
    PasswordRule(1, 'At least 12 characters long', lambda p: len(p) >= 12),
    PasswordRule(2, 'Contains uppercase letter', lambda p: re.search(r'[A-Z]', p) is not None),
    PasswordRule(3, 'Contains lowercase letter', lambda p: re.search(r'[a-z]', p) is not None),
    PasswordRule(4, 'Contains number', lambda p: re.search(r'[0-9]', p) is not None),
    PasswordRule(5, 'Contains special character (!@#$%^&*)', lambda p: re.search(r'[!@#$%^&*]', p) is not None),
    PasswordRule(6, "No repeating characters (e.g., 'aaa')", lambda p: TRIPLE_REPEAT.search(p) is None),
    PasswordRule(7, "Must contain a number that's the sum of two previous numbers", _has_fibonacci_step),
    PasswordRule(
        8, 'Must include a day of the week (capitalized)',
        lambda p: re.search(r'Monday|Tuesday|Wednesday|Thursday|Friday|Saturday|Sunday', p) is not None,
    ),
    PasswordRule(
        9, 'Must contain alternating consonants and vowels somewhere',
        lambda p: re.search(r'[bcdfghjklmnpqrstvwxyz][aeiou][bcdfghjklmnpqrstvwxyz][aeiou]', p, re.I) is not None,
    ),
    PasswordRule(
        10, 'Must include a mathematical operation (e.g., 2+2=4)',
        lambda p: re.search(r'\d+[+\-*/]\d+=\d+', p) is not None,
    ),
]

PASSWORD_BONUSES = [
    PasswordBonus('15 characters or more', 20, lambda p: len(p) >= 15),
    PasswordBonus('Two uppercase letters', 10, lambda p: re.search(r'[A-Z].*[A-Z]', p) is not None),
    PasswordBonus('Two lowercase letters', 10, lambda p: re.search(r'[a-z].*[a-z]', p) is not None),
    PasswordBonus('Two numbers', 10, lambda p: re.search(r'[0-9].*[0-9]', p) is not None),
    PasswordBonus('Two special characters', 20, lambda p: re.search(r'[!@#$%^&*].*[!@#$%^&*]', p) is not None),
    PasswordBonus('No character repeated three times', 10, lambda p: TRIPLE_REPEAT.search(p) is None),
    PasswordBonus('A character outside letters, numbers and !@#$%^&*', 20,
                  lambda p: re.search(r'[^A-Za-z0-9!@#$%^&*]', p) is not None),
]

NETWORK_QUESTIONS = [
    Question(1, 'An attacker is flooding your network with TCP SYN packets. What type of attack is this?',
             ['SQL Injection', 'SYN Flood Attack', 'Cross-Site Scripting', 'Man in the Middle'], 1, 100, 'protocol', 15),
    Question(2, 'Which port should be blocked to prevent unauthorized SSH access?',
             ['22', '80', '443', '3389'], 0, 100, 'firewall', 15),
    Question(3, 'Software that encrypts your files and demands payment is known as:',
             ['Spyware', 'Ransomware', 'Adware', 'Worms'], 1, 100, 'malware', 15),
    Question(4, 'What is the purpose of a honeypot in network security?',
             ['To store encrypted data', 'To attract and detect attackers', 'To manage network traffic',
              'To backup system files'], 1, 100, 'protocol', 15),
    Question(5, 'Which of these is a type of Man-in-the-Middle attack?',
             ['ARP Spoofing', 'Buffer Overflow', 'SQL Injection', 'Zero-day Exploit'], 0, 100, 'protocol', 15),
    Question(6, 'What does NAT stand for in networking?',
             ['Network Address Translation', 'Network Authentication Token', 'Native Access Transfer',
              'Network Authorization Type'], 0, 100, 'protocol', 15),
    Question(7, 'Which protocol is used for secure email transmission?',
             ['HTTP', 'FTP', 'SMTP', 'SMTPS'], 3, 100, 'protocol', 15),
    Question(8, 'What is the main purpose of an IDS (Intrusion Detection System)?',
             ['Block network traffic', 'Monitor for suspicious activity', 'Encrypt data', 'Manage passwords'],
             1, 100, 'firewall', 15),
    Question(9, 'Which of these is NOT a type of firewall?',
             ['Packet filtering', 'Circuit-level gateway', 'Memory scanning', 'Application-level gateway'],
             2, 100, 'firewall', 15),
    Question(10, 'What type of attack attempts to exhaust system resources?',
             ['Phishing', 'DDoS', 'SQL Injection', 'Cross-site Scripting'], 1, 100, 'protocol', 15),
]

ENCRYPTION_CHALLENGES = [
    Challenge('KHOOR ZRUOG', '3', 'HELLO WORLD',
              'Caesar cipher - shift each letter backward by the key number (A→X, B→Y, C→Z)', 'caesar', 100),
    Challenge('XLMW MW E WIGYVMXC XIWX', '4', 'THIS IS A SECURITY TEST',
              'Caesar cipher - each letter is shifted by 4 positions', 'caesar', 150),
]

PASSWORD_TIME_LIMIT_SEC = 120
ENCRYPTION_TIME_LIMIT_SEC = 180
