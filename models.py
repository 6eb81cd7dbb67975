from dataclasses import dataclass, asdict, fields
from datetime import datetime, timezone
from typing import Any, Optional


SYSTEM_AUTHOR : int = 0
SYSTEM_NAME : str = 'system'
UNKNOWN_TIME : datetime = datetime.min.replace(tzinfo=timezone.utc)


def utcnow_iso() -> str:
    '''Current UTC time as an ISO-8601 string with milliseconds and a trailing Z.'''
    now : datetime = datetime.now(timezone.utc)
    return now.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def parse_timestamp(value: str) -> datetime:
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    parsed : datetime = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Record:
    '''Mixin for dataclasses stored as plain JSON objects.'''

    id : int

    @classmethod
    def from_record(cls, data: dict) -> Any:
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def to_record(self) -> dict:
        return asdict(self)


@dataclass
class Post(Record):
    id : int
    title : str
    description : str
    created_at : str
    updated_at : str
    author : int = SYSTEM_AUTHOR

    @property
    def created(self) -> datetime:
        # hand-edited files may hold anything here; such posts sort as oldest
        try:
            return parse_timestamp(self.created_at)
        except (AttributeError, TypeError, ValueError):
            return UNKNOWN_TIME


@dataclass
class User(Record):
    id : int
    username : str
    password : str
    nickname : str

    def identity(self) -> 'Identity':
        return Identity(id=self.id, username=self.username, nickname=self.nickname)


@dataclass(frozen=True)
class Identity:
    '''The logged-in user as seen by request handlers; never carries the password.'''
    id : int
    username : str
    nickname : str


def welcome_post() -> dict:
    stamp : str = utcnow_iso()
    return Post(
        id=1,
        title='About this board',
        description='This board requires an account. Register, then log in to write posts.',
        created_at=stamp,
        updated_at=stamp,
        author=SYSTEM_AUTHOR,
    ).to_record()


def author_name(author_id: int, nicknames: dict) -> str:
    name : Optional[str] = nicknames.get(author_id)
    return name if name else SYSTEM_NAME
