import json
import logging

from models import Post, User, utcnow_iso
from storage import JsonCollection, load_data, save_data


def make_post(collection, title='t', author=1, created_at=None):
    stamp = created_at or utcnow_iso()
    return collection.insert(title=title, description='d', created_at=stamp, updated_at=stamp, author=author)


def test_load_missing_file_writes_default(tmp_path):
    path = tmp_path / 'topics.json'
    data = load_data(str(path), [{'id': 1}])
    assert data == [{'id': 1}]
    assert json.loads(path.read_text(encoding='utf-8')) == [{'id': 1}]


def test_load_invalid_json_returns_default_without_writing(tmp_path, caplog):
    path = tmp_path / 'users.json'
    path.write_text('{not json', encoding='utf-8')
    with caplog.at_level(logging.ERROR):
        data = load_data(str(path), [])
    assert data == []
    assert path.read_text(encoding='utf-8') == '{not json'
    assert 'Failed to read data file' in caplog.text


def test_save_is_pretty_printed(tmp_path):
    path = tmp_path / 'users.json'
    assert save_data(str(path), [{'id': 1, 'nickname': 'Ünï'}])
    text = path.read_text(encoding='utf-8')
    assert '\n    {' in text
    assert 'Ünï' in text


def test_save_failure_is_logged_not_raised(tmp_path, caplog):
    with caplog.at_level(logging.ERROR):
        assert save_data(str(tmp_path), [{'id': 1}]) is False
    assert 'Failed to write data file' in caplog.text


def test_ids_continue_after_existing_records(tmp_path):
    path = tmp_path / 'users.json'
    save_data(str(path), [
        {'id': 3, 'username': 'abcd', 'password': 'x', 'nickname': 'A'},
        {'id': 7, 'username': 'efgh', 'password': 'x', 'nickname': 'E'},
    ])
    users = JsonCollection(str(path), User)
    assert users.next_id == 8
    assert users.insert(username='ijkl', password='x', nickname='I').id == 8


def test_ids_are_never_reused(tmp_path):
    posts = JsonCollection(str(tmp_path / 'topics.json'), Post)
    first = make_post(posts)
    second = make_post(posts)
    posts.delete(second.id)
    third = make_post(posts)
    assert first.id < second.id < third.id


def test_mutations_are_written_through(tmp_path):
    path = tmp_path / 'topics.json'
    posts = JsonCollection(str(path), Post)
    post = make_post(posts, title='before')
    posts.update(post.id, title='after')
    on_disk = json.loads(path.read_text(encoding='utf-8'))
    assert on_disk[0]['title'] == 'after'

    assert posts.delete(post.id) is True
    assert json.loads(path.read_text(encoding='utf-8')) == []
    assert posts.delete(post.id) is False
    assert posts.update(post.id, title='gone') is None


def test_reload_round_trips_records(tmp_path):
    path = str(tmp_path / 'topics.json')
    posts = JsonCollection(path, Post)
    post = make_post(posts, title='kept', author=4)
    reloaded = JsonCollection(path, Post)
    assert reloaded.get(post.id) == post
    assert reloaded.find(author=4).title == 'kept'


def test_find_and_get_miss(tmp_path):
    users = JsonCollection(str(tmp_path / 'users.json'), User)
    assert users.get(1) is None
    assert users.get(None) is None
    assert users.find(username='nobody') is None
    assert len(users) == 0


def test_load_non_array_returns_default(tmp_path, caplog):
    path = tmp_path / 'topics.json'
    path.write_text('{"id": 1}', encoding='utf-8')
    with caplog.at_level(logging.ERROR):
        assert load_data(str(path), [{'id': 2}]) == [{'id': 2}]
    assert 'does not hold a JSON array of objects' in caplog.text
    assert path.read_text(encoding='utf-8') == '{"id": 1}'


def test_load_array_of_scalars_returns_default(tmp_path):
    path = tmp_path / 'users.json'
    path.write_text('[1, "two"]', encoding='utf-8')
    assert load_data(str(path), []) == []


def test_collection_falls_back_on_non_array_file(tmp_path):
    path = tmp_path / 'topics.json'
    path.write_text('{"id": 1}', encoding='utf-8')
    seed = {'id': 1, 'title': 'seed', 'description': 'd', 'created_at': 'x', 'updated_at': 'x', 'author': 0}
    posts = JsonCollection(str(path), Post, default=[seed])
    assert [p.title for p in posts] == ['seed']
    assert posts.next_id == 2


def test_collection_falls_back_on_incomplete_records(tmp_path, caplog):
    path = tmp_path / 'users.json'
    path.write_text('[{"id": 1, "username": "alice1"}]', encoding='utf-8')
    with caplog.at_level(logging.ERROR):
        users = JsonCollection(str(path), User)
    assert len(users) == 0
    assert users.next_id == 1
    assert 'Invalid record in data file' in caplog.text


def test_malformed_timestamp_sorts_as_oldest():
    post = Post(id=1, title='t', description='d', created_at='yesterday', updated_at='yesterday')
    assert post.created.year == 1
    assert post.created.tzinfo is not None
