import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///cyberguard.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Room capacity and start requirement
    MAX_PLAYERS = int(os.environ.get('MAX_PLAYERS', '8'))
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    # Hold time on the results screen before the room returns to its lobby (seconds)
    ROUND_END_DELAY_SEC = int(os.environ.get('ROUND_END_DELAY_SEC', '5'))
    # Round time limits (seconds). Network defense uses its per-question limits.
    PASSWORD_TIME_LIMIT_SEC = int(os.environ.get('PASSWORD_TIME_LIMIT_SEC', '120'))
    ENCRYPTION_TIME_LIMIT_SEC = int(os.environ.get('ENCRYPTION_TIME_LIMIT_SEC', '180'))
    # Compare-and-set attempts per protocol step before giving up
    STORE_MAX_RETRIES = int(os.environ.get('STORE_MAX_RETRIES', '5'))
    # Optional: heartbeat interval for timer worker logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
