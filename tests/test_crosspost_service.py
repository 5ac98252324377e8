"""
Post dispatch: publish hook, deferred send and the recurring refresh task.
"""

import pytest

from skyshare.modules.crosspost import CrossPostService, REFRESH_TOKEN_TASK, SEND_POST_TASK
from skyshare.modules.crosspost.models import Post

HELLO_WORLD = Post(
    id=1,
    title='Hello World',
    content='<p>The full body of the post.</p>',
    excerpt='A short post about testing.',
    published_at='2024-05-01 09:30:00',
    shortlink='https://x.test/?p=1',
)

CREATED = {'uri': 'at://did:plc:alice/app.bsky.feed.post/3kabc', 'cid': 'bafyrei'}


@pytest.fixture
def posts():
    return {1: HELLO_WORLD}


@pytest.fixture
def crosspost(settings_store, task_queue, posts, fake_http):
    return CrossPostService(settings=settings_store, tasks=task_queue, content_loader=posts.get, http=fake_http)


# ---------------------------------------------------------------------------
# Publish hook
# ---------------------------------------------------------------------------

def test_on_publish_without_token_queues_nothing(crosspost, task_queue):
    assert crosspost.on_publish(1) is False
    assert task_queue.pending(SEND_POST_TASK) == []


def test_on_publish_queues_send(crosspost, connected, task_queue, fake_http):
    assert crosspost.on_publish(1) is True

    pending = task_queue.pending(SEND_POST_TASK)
    assert len(pending) == 1
    assert pending[0]['args'] == [1]
    # Nothing is sent from the publishing request itself
    fake_http.post.assert_not_called()


# ---------------------------------------------------------------------------
# Send
# ---------------------------------------------------------------------------

def test_send_hello_world_record(crosspost, connected, fake_http, make_response):
    fake_http.post.side_effect = [
        make_response(200, {'accessJwt': 'access-2', 'refreshJwt': 'refresh-2'}),
        make_response(200, CREATED),
    ]

    result = crosspost.send(1)

    assert result == {'success': True, 'url': 'https://bsky.app/profile/did:plc:alice/post/3kabc', 'error': ''}

    refresh_call, create_call = fake_http.post.call_args_list
    assert refresh_call[0][0] == 'https://bsky.social/xrpc/com.atproto.server.refreshSession'
    assert create_call[0][0] == 'https://bsky.social/xrpc/com.atproto.repo.createRecord'
    assert create_call[1]['headers']['Authorization'] == 'Bearer access-2'
    assert create_call[1]['json'] == {
        'collection': 'app.bsky.feed.post',
        'repo': 'did:plc:alice',
        'did': 'did:plc:alice',
        'record': {
            '$type': 'app.bsky.feed.post',
            'text': 'A short post about testing.',
            'createdAt': '2024-05-01T09:30:00+00:00',
            'embed': {
                '$type': 'app.bsky.embed.external',
                'external': {
                    'uri': 'https://x.test/?p=1',
                    'title': 'Hello World',
                    'description': 'A short post about testing.',
                },
            },
        },
    }


def test_send_uses_old_token_when_refresh_fails(crosspost, connected, fake_http, make_response):
    fake_http.post.side_effect = [
        make_response(400, {'error': 'ExpiredToken'}),
        make_response(200, CREATED),
    ]

    result = crosspost.send(1)

    assert result['success'] is True
    create_call = fake_http.post.call_args_list[1]
    assert create_call[1]['headers']['Authorization'] == 'Bearer access-1'


def test_send_not_configured_makes_no_request(crosspost, fake_http):
    result = crosspost.send(1)

    assert result['success'] is False
    assert result['url'] == ''
    fake_http.post.assert_not_called()


def test_send_token_without_did_is_not_configured(crosspost, connected, fake_http, make_response):
    connected.delete('BLUESKY_DID')
    fake_http.post.return_value = make_response(200, {'accessJwt': 'access-2', 'refreshJwt': 'refresh-2'})

    result = crosspost.send(1)

    assert result['success'] is False
    # Only the refresh went out
    assert fake_http.post.call_count == 1


def test_send_missing_content(crosspost, connected, fake_http, make_response):
    fake_http.post.return_value = make_response(200, {'accessJwt': 'access-2', 'refreshJwt': 'refresh-2'})

    result = crosspost.send(99)

    assert result['success'] is False
    assert '99' in result['error']
    assert fake_http.post.call_count == 1


def test_send_rejected_records_error(crosspost, connected, fake_http, make_response):
    fake_http.post.side_effect = [
        make_response(200, {'accessJwt': 'access-2', 'refreshJwt': 'refresh-2'}),
        make_response(401, {'error': 'InvalidToken', 'message': 'Bad token'}),
    ]

    result = crosspost.send(1)

    assert result['success'] is False
    assert 'Bad token' in result['error']
    last_error = crosspost.session.last_error()
    assert last_error['operation'] == 'send'
    assert last_error['remote_error'] == 'InvalidToken'


def test_queued_send_runs_through_task_queue(crosspost, connected, task_queue, fake_http, make_response):
    fake_http.post.side_effect = [
        make_response(200, {'accessJwt': 'access-2', 'refreshJwt': 'refresh-2'}),
        make_response(200, CREATED),
    ]
    crosspost.on_publish(1)

    assert task_queue.run_pending() == 1
    assert fake_http.post.call_count == 2
    assert task_queue.pending(SEND_POST_TASK) == []


# ---------------------------------------------------------------------------
# Record building
# ---------------------------------------------------------------------------

def test_build_post_falls_back_to_body(crosspost):
    post = Post(id=2, title='No excerpt', content='<p>Body &amp; soul</p>', published_at='2024-01-02T03:04:05Z',
                shortlink='https://x.test/?p=2')

    outbound = crosspost.build_post(post)

    assert outbound.text == 'Body & soul'
    assert outbound.embed.description == 'Body & soul'
    assert outbound.created_at == '2024-01-02T03:04:05+00:00'


def test_build_post_trims_long_content(crosspost):
    body = ' '.join(['word'] * 300)
    post = Post(id=3, title='Long', content=f'<p>{body}</p>', shortlink='https://x.test/?p=3')

    outbound = crosspost.build_post(post)

    assert len(outbound.text) <= 400
    assert outbound.text.endswith(' [...]')
    assert len(outbound.embed.description.split()) == 55 + 1


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

def test_install_schedules_refresh_once(crosspost, task_queue):
    crosspost.install()
    crosspost.install()

    pending = task_queue.pending(REFRESH_TOKEN_TASK)
    assert len(pending) == 1
    assert pending[0]['interval'] == 7 * 24 * 60 * 60


def test_uninstall_removes_refresh(crosspost, task_queue):
    crosspost.install()
    crosspost.uninstall()

    assert task_queue.pending(REFRESH_TOKEN_TASK) == []


def test_recurring_refresh_task(crosspost, connected, task_queue, fake_http, make_response):
    fake_http.post.return_value = make_response(200, {'accessJwt': 'access-2', 'refreshJwt': 'refresh-2'})
    crosspost.install()

    task_queue.run_pending()

    assert connected.get('BLUESKY_ACCESS_JWT') == 'access-2'
    # Still scheduled for next week
    assert len(task_queue.pending(REFRESH_TOKEN_TASK)) == 1


def test_status(crosspost, connected):
    crosspost.install()

    status = crosspost.status()

    assert status['connected'] is True
    assert status['did'] == 'did:plc:alice'
    assert status['has_password'] is False
    assert status['last_error'] is None
    assert status['next_refresh'].endswith('+00:00')


def test_uninitialised_service_refuses_to_queue():
    with pytest.raises(RuntimeError):
        CrossPostService().on_publish(1)
