from typing import Any, List, Mapping, NamedTuple, Optional, Sequence, Tuple
from urllib.parse import urlencode

from models import Post

DEFAULT_PAGE : int = 1
DEFAULT_LIMIT : int = 10
DEFAULT_SORT : str = 'latest'
PAGE_GROUP_SIZE : int = 5
SORT_OPTIONS : Tuple[Tuple[str, str], ...] = (
    ('latest', 'Newest'),
    ('oldest', 'Oldest'),
    ('title_asc', 'Title (A-Z)'),
)
LIMIT_OPTIONS : Tuple[int, ...] = (10, 30, 50)


def parse_positive(value: Any, default: int) -> int:
    '''Integer from user input; anything missing, malformed or below 1 gives ``default``.'''
    try:
        number : int = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


class ListState(NamedTuple):
    '''Position in the post list, carried through links, forms and redirects.'''
    page : int = DEFAULT_PAGE
    limit : int = DEFAULT_LIMIT
    sort : str = DEFAULT_SORT

    @classmethod
    def from_args(cls, args: Mapping) -> 'ListState':
        sort : str = args.get('sort') or DEFAULT_SORT
        if sort not in dict(SORT_OPTIONS):
            sort = DEFAULT_SORT
        return cls(
            page=parse_positive(args.get('page'), DEFAULT_PAGE),
            limit=parse_positive(args.get('limit'), DEFAULT_LIMIT),
            sort=sort,
        )

    def query(self, **overrides: Any) -> str:
        params : dict = {}
        if 'id' in overrides:
            params['id'] = overrides.pop('id')
        params.update(self._replace(**overrides)._asdict())
        return urlencode(params)


def sort_posts(posts: Sequence[Post], key: str) -> List[Post]:
    if key == 'oldest':
        return sorted(posts, key=lambda p: p.created)
    if key == 'title_asc':
        return sorted(posts, key=lambda p: p.title.casefold())
    return sorted(posts, key=lambda p: p.created, reverse=True)


def paginate(posts: Sequence[Post], page: int, limit: int) -> Tuple[List[Post], int]:
    start : int = (page - 1) * limit
    return list(posts[start:start + limit]), len(posts)


def page_count(total: int, limit: int) -> int:
    return -(-total // limit)


class PageWindow(NamedTuple):
    pages : List[int]
    previous : Optional[int]
    next : Optional[int]


def page_window(total: int, page: int, limit: int) -> PageWindow:
    '''Pages of the group of five containing ``page``, plus neighbours outside it.'''
    total_pages : int = page_count(total, limit)
    group : int = -(-page // PAGE_GROUP_SIZE)
    start : int = (group - 1) * PAGE_GROUP_SIZE + 1
    end : int = min(start + PAGE_GROUP_SIZE - 1, total_pages)
    return PageWindow(
        pages=list(range(start, end + 1)),
        previous=start - 1 if group > 1 else None,
        next=end + 1 if group * PAGE_GROUP_SIZE < total_pages else None,
    )
