'''HTML rendering for the board.

Each function returns a ``Markup`` string so fragments can be nested inside
the page shell without being escaped twice. User text is escaped by Jinja's
autoescaping; post bodies go through markdown-it with raw HTML disabled.
'''
from datetime import datetime
from typing import Optional, Sequence

from flask import Flask, render_template
from markdown_it import MarkdownIt
from markupsafe import Markup
from werkzeug.http import HTTP_STATUS_CODES

from listing import LIMIT_OPTIONS, SORT_OPTIONS, ListState, page_count, page_window
from models import Identity, Post, author_name, parse_timestamp

TIMESTAMP_FORMAT : str = '%Y-%m-%d %H:%M:%S'

markdown_renderer : MarkdownIt = MarkdownIt('commonmark', {'breaks': True, 'html': False})


def render_markdown(source: str) -> Markup:
    return Markup(markdown_renderer.render(source or ''))


def format_localtime(value: str) -> str:
    try:
        stamp : datetime = parse_timestamp(value).astimezone()
    except (AttributeError, TypeError, ValueError, OverflowError):
        return value
    return stamp.strftime(TIMESTAMP_FORMAT)


def init_app(app: Flask) -> None:
    app.add_template_filter(render_markdown, 'markdown')
    app.add_template_filter(format_localtime, 'localtime')
    app.add_template_filter(author_name, 'author')


def render_post_list(posts: Sequence[Post], state: ListState, nicknames: dict) -> Markup:
    return Markup(render_template(
        '_post_list.html',
        posts=posts,
        state=state,
        nicknames=nicknames,
        sort_options=SORT_OPTIONS,
        limit_options=LIMIT_OPTIONS,
    ))


def render_pagination(total: int, state: ListState) -> Markup:
    if page_count(total, state.limit) <= 1:
        return Markup('')
    window = page_window(total, state.page, state.limit)
    return Markup(render_template('_pagination.html', window=window, state=state))


def render_page(title: str, list_html: str, body_html: str, controls_html: str,
                state: ListState, user: Optional[Identity]) -> str:
    return render_template(
        'base.html',
        title=title,
        list_html=Markup(list_html),
        body_html=Markup(body_html),
        controls_html=Markup(controls_html),
        state=state,
        user=user,
    )


def render_post(post: Post, nicknames: dict) -> Markup:
    return Markup(render_template('post.html', post=post, author_name=author_name(post.author, nicknames)))


def render_post_controls(post: Post, state: ListState) -> Markup:
    return Markup(render_template('post_controls.html', post=post, state=state))


def render_intro() -> Markup:
    return Markup(render_template('intro.html'))


def render_post_form(state: ListState, post: Optional[Post] = None) -> Markup:
    return Markup(render_template('post_form.html', state=state, post=post))


def render_login_form(state: ListState) -> Markup:
    return Markup(render_template('login.html', state=state))


def render_register_form(state: ListState) -> Markup:
    return Markup(render_template('register.html', state=state))


def render_error(status: int, message: str, link: Optional[str] = None, link_label: str = 'Back to the board') -> Markup:
    return Markup(render_template(
        'error.html',
        status=status,
        reason=HTTP_STATUS_CODES.get(status, 'Error'),
        message=message,
        link=link,
        link_label=link_label,
    ))
