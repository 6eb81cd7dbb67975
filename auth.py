import hmac
import logging
import re
import secrets
from typing import Dict, Optional

from werkzeug.http import parse_cookie
from werkzeug.security import check_password_hash, generate_password_hash

from models import Identity, User
from storage import JsonCollection

logger = logging.getLogger(__name__)

SESSION_COOKIE : str = 'sessionId'
SESSION_MAX_AGE : int = 60 * 60 * 24 * 30
USERNAME_PATTERN = re.compile(r'[A-Za-z0-9]{4,}')
HASH_PREFIXES : tuple = ('scrypt:', 'pbkdf2:')


def generate_session_id() -> str:
    return secrets.token_hex(16)


class SessionTable:
    '''Process-lifetime map of session token to user id.'''

    def __init__(self):
        self._sessions : Dict[str, int] = {}

    def __contains__(self, token: str) -> bool:
        return token in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, user_id: int) -> str:
        token : str = generate_session_id()
        while token in self._sessions:
            token = generate_session_id()
        self._sessions[token] = user_id
        logger.info(f'Session opened for user {user_id}')
        return token

    def destroy(self, token: Optional[str]) -> None:
        if token and self._sessions.pop(token, None) is not None:
            logger.info('Session closed')

    def get(self, token: Optional[str]) -> Optional[int]:
        if not token:
            return None
        return self._sessions.get(token)


def parse_cookies(header: Optional[str]) -> Dict[str, str]:
    if not header:
        return {}
    return dict(parse_cookie(header))


def resolve_user(cookie_header: Optional[str], sessions: SessionTable, users: JsonCollection) -> Optional[Identity]:
    '''Map a Cookie header to the logged-in user, or None.'''
    token : Optional[str] = parse_cookies(cookie_header).get(SESSION_COOKIE)
    user_id : Optional[int] = sessions.get(token)
    if user_id is None:
        return None
    user : Optional[User] = users.get(user_id)
    return user.identity() if user else None


def valid_username(username: str) -> bool:
    return USERNAME_PATTERN.fullmatch(username) is not None


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def check_password(stored: str, candidate: str) -> bool:
    if stored.startswith(HASH_PREFIXES):
        return check_password_hash(stored, candidate)
    # hand-edited users.json entries may still hold clear text
    return hmac.compare_digest(stored.encode('utf-8'), candidate.encode('utf-8'))


def authenticate(users: JsonCollection, username: str, password: str) -> Optional[User]:
    user : Optional[User] = users.find(username=username)
    if user is None or not check_password(user.password, password):
        return None
    return user
