import os, sys, logging
from flask import Flask, g, request, redirect, abort, current_app, Response
from werkzeug.exceptions import HTTPException
from typing import Union, Optional, Any, Mapping
from dotenv import load_dotenv

import views
from auth import (SESSION_COOKIE, SESSION_MAX_AGE, SessionTable, authenticate, hash_password,
                  parse_cookies, resolve_user, valid_username)
from listing import ListState, paginate, sort_posts
from models import Post, User, welcome_post, utcnow_iso
from storage import JsonCollection

load_dotenv()

file_dir : str = os.path.dirname(os.path.realpath(__file__))
frozen_dir : str = os.path.dirname(sys.executable)
executable_dir : str = file_dir
if getattr(sys, 'frozen', False):
    executable_dir = frozen_dir

STATE_FIELDS : tuple = ('page', 'limit', 'sort')


class Board:
    '''Everything a request can touch: both collections and the session table.'''

    def __init__(self, topics_file: str, users_file: str):
        self.posts : JsonCollection = JsonCollection(topics_file, Post, default=[welcome_post()])
        self.users : JsonCollection = JsonCollection(users_file, User)
        self.sessions : SessionTable = SessionTable()

    def nicknames(self) -> dict:
        return {user.id: user.nickname for user in self.users}


def board() -> Board:
    return current_app.extensions['board']


def is_blank(value: Optional[str]) -> bool:
    return not value or not value.strip()


def parse_id(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def list_state() -> ListState:
    return ListState.from_args(request.values)


def return_url(path: str = '/') -> str:
    '''``path`` plus the list state, but only if the form carried one.'''
    if any(request.values.get(name) for name in STATE_FIELDS):
        return f'{path}?{list_state().query()}'
    return path


def render_list_page(title: str, body_html: str, controls_html: str = '', state: Optional[ListState] = None,
                     nicknames: Optional[dict] = None) -> str:
    '''Full page with the list column for ``state``.'''
    state = state or list_state()
    data : Board = board()
    if nicknames is None:
        nicknames = data.nicknames()
    ordered : list = sort_posts(data.posts.all(), state.sort)
    posts, total = paginate(ordered, state.page, state.limit)
    list_html : str = views.render_pagination(total, state) + views.render_post_list(posts, state, nicknames)
    return views.render_page(title, list_html, body_html, controls_html, state, g.user)


def render_form_page(title: str, body_html: str, state: Optional[ListState] = None) -> str:
    '''Full page with an empty list column, used for forms and errors.'''
    state = state or list_state()
    list_html : str = views.render_post_list([], ListState(), {})
    return views.render_page(title, list_html, body_html, '', state, g.get('user'))


def editable_post(post_id: Optional[int], action: str) -> Post:
    post : Optional[Post] = board().posts.get(post_id)
    if g.user is None or post is None or post.author != g.user.id:
        abort(403, description=f'You are not allowed to {action} this post.')
    return post


def create_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    app : Flask = Flask(__name__)
    app.config['TOPICS_FILE'] = os.getenv('TOPICS_FILE', os.path.join(executable_dir, 'topics.json'))
    app.config['USERS_FILE'] = os.getenv('USERS_FILE', os.path.join(executable_dir, 'users.json'))
    app.config['SESSION_MAX_AGE'] = int(os.getenv('SESSION_MAX_AGE', str(SESSION_MAX_AGE)))
    if config:
        app.config.update(config)

    app.extensions['board'] = Board(app.config['TOPICS_FILE'], app.config['USERS_FILE'])
    views.init_app(app)

    @app.before_request
    def load_user() -> None:
        data : Board = board()
        g.user = resolve_user(request.headers.get('Cookie'), data.sessions, data.users)

    @app.route('/')
    def index() -> Union[str, Any]:
        state : ListState = list_state()
        post_id : Optional[str] = request.args.get('id')
        if not post_id:
            return render_list_page('Welcome', views.render_intro(), state=state)

        post : Optional[Post] = board().posts.get(parse_id(post_id))
        if post is None:
            body : str = views.render_error(404, 'The post could not be found.')
            return render_list_page('404 Not Found', body, state=state)

        nicknames : dict = board().nicknames()
        controls : str = ''
        if g.user is not None and g.user.id == post.author:
            controls = views.render_post_controls(post, state)
        return render_list_page(post.title, views.render_post(post, nicknames), controls, state=state, nicknames=nicknames)

    @app.route('/create')
    def create() -> Union[str, Any]:
        if g.user is None:
            return redirect('/login')
        return render_form_page('New post', views.render_post_form(list_state()))

    @app.route('/create_process', methods=['POST'])
    def create_process() -> Union[str, Any]:
        if g.user is None:
            abort(403, description='Log in to write posts.')
        title : Optional[str] = request.form.get('title')
        description : Optional[str] = request.form.get('description')
        if is_blank(title) or is_blank(description):
            abort(400, description='Both a title and content are required.')

        stamp : str = utcnow_iso()
        post : Post = board().posts.insert(
            title=title, description=description, created_at=stamp, updated_at=stamp, author=g.user.id,
        )
        current_app.logger.info(f'Post {post.id} created by user {g.user.id}')
        return redirect(f'/?{list_state().query(page=1)}')

    @app.route('/update')
    def update() -> Union[str, Any]:
        post : Post = editable_post(parse_id(request.args.get('id')), 'edit')
        return render_form_page('Edit post', views.render_post_form(list_state(), post))

    @app.route('/update_process', methods=['POST'])
    def update_process() -> Union[str, Any]:
        post : Post = editable_post(parse_id(request.form.get('id')), 'edit')
        title : Optional[str] = request.form.get('title')
        description : Optional[str] = request.form.get('description')
        if is_blank(title) or is_blank(description):
            abort(400, description='Both a title and content are required.')

        board().posts.update(post.id, title=title, description=description, updated_at=utcnow_iso())
        current_app.logger.info(f'Post {post.id} updated by user {g.user.id}')
        return redirect(f'/?{list_state().query(id=post.id)}')

    @app.route('/delete_process', methods=['POST'])
    def delete_process() -> Union[str, Any]:
        post : Post = editable_post(parse_id(request.form.get('id')), 'delete')
        board().posts.delete(post.id)
        current_app.logger.info(f'Post {post.id} deleted by user {g.user.id}')
        return redirect(f'/?{list_state().query()}')

    @app.route('/register')
    def register() -> Union[str, Any]:
        return render_form_page('Register', views.render_register_form(list_state()))

    @app.route('/register_process', methods=['POST'])
    def register_process() -> Union[str, Any]:
        username : str = request.form.get('username', '')
        password : str = request.form.get('password', '')
        nickname : str = request.form.get('nickname', '')
        if is_blank(username) or is_blank(password) or is_blank(nickname):
            abort(400, description='Please fill in every field.')
        if not valid_username(username):
            abort(400, description='Usernames need at least 4 letters or digits and nothing else.')

        users : JsonCollection = board().users
        if users.find(username=username) is not None:
            abort(409, description='That username is already taken.')

        user : User = users.insert(username=username, password=hash_password(password), nickname=nickname)
        current_app.logger.info(f'User {user.id} registered as {username}')
        return redirect(return_url('/login'))

    @app.route('/login')
    def login() -> Union[str, Any]:
        if g.user is not None:
            return redirect('/')
        return render_form_page('Log in', views.render_login_form(list_state()))

    @app.route('/login_process', methods=['POST'])
    def login_process() -> Union[str, Any]:
        user : Optional[User] = authenticate(
            board().users, request.form.get('username', ''), request.form.get('password', ''),
        )
        if user is None:
            abort(401, description='Wrong username or password.')

        token : str = board().sessions.create(user.id)
        response : Response = redirect(return_url('/'))
        response.set_cookie(SESSION_COOKIE, token, max_age=current_app.config['SESSION_MAX_AGE'],
                            path='/', httponly=True)
        return response

    @app.route('/logout_process', methods=['POST'])
    def logout_process() -> Union[str, Any]:
        board().sessions.destroy(parse_cookies(request.headers.get('Cookie')).get(SESSION_COOKIE))
        response : Response = redirect(return_url('/'))
        response.delete_cookie(SESSION_COOKIE, path='/')
        return response

    def error_page(error: HTTPException, status: int, link: Optional[str] = None, link_label: str = 'Back to the board') -> Union[str, Any]:
        body : str = views.render_error(status, error.description, link, link_label)
        return render_form_page(f'{status} Error', body), status

    @app.errorhandler(400)
    def bad_request(error) -> Union[str, Any]:
        return error_page(error, 400)

    @app.errorhandler(401)
    def not_allowed(error) -> Union[str, Any]:
        return error_page(error, 401, '/login', 'Try again')

    @app.errorhandler(403)
    def forbidden(error) -> Union[str, Any]:
        return error_page(error, 403, '/')

    @app.errorhandler(404)
    @app.errorhandler(405)
    def not_found(_error) -> Union[str, Any]:
        body : str = views.render_error(404, 'The requested page does not exist.', '/')
        return render_form_page('404 Not Found', body), 404

    @app.errorhandler(409)
    def conflict(error) -> Union[str, Any]:
        return error_page(error, 409, '/register', 'Try again')

    @app.errorhandler(500)
    def server_error(error) -> Union[str, Any]:
        current_app.logger.error(f'Request to {request.path} failed: {getattr(error, "original_exception", error)}')
        body : str = views.render_error(500, 'Something went wrong while handling your request. Please try again later.', '/')
        return views.render_page('500 Error', views.render_post_list([], ListState(), {}), body, '', ListState(), None), 500

    return app


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    host : str = os.getenv('BOARD_HOST', '0.0.0.0')
    port : int = int(os.getenv('BOARD_PORT', '3000'))
    app : Flask = create_app()
    print(f'Simple Board running on http://localhost:{port}/')
    app.run(host=host, port=port, threaded=False)
