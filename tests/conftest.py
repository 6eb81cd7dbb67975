import re

import pytest

from app import create_app

SESSION_RE = re.compile(r'sessionId=([0-9a-f]*)')


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'TOPICS_FILE': str(tmp_path / 'topics.json'),
        'USERS_FILE': str(tmp_path / 'users.json'),
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def board(app):
    return app.extensions['board']


def register(client, username='alice1', password='pw', nickname='Alice'):
    return client.post('/register_process', data={
        'username': username,
        'password': password,
        'nickname': nickname,
    })


def login(client, username='alice1', password='pw'):
    return client.post('/login_process', data={'username': username, 'password': password})


def session_token(response):
    match = SESSION_RE.search(response.headers.get('Set-Cookie', ''))
    return match.group(1) if match else None


@pytest.fixture
def alice(client):
    register(client)
    login(client)
    return client
