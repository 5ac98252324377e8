"""
XRPC adapter helpers: domain handling, headers, response mapping.
"""

import pytest

from skyshare.modules.crosspost.errors import AuthError, MalformedResponse, TransportError
from skyshare.modules.crosspost.platforms import bluesky


@pytest.mark.parametrize('value', ['bsky.social', 'ftp://bsky.social', 'https://', 'https://bsky.social/?x=1', ''])
def test_sanitize_domain_rejects_invalid(value):
    with pytest.raises(ValueError):
        bluesky.sanitize_domain(value)


def test_sanitize_domain_accepts_url():
    assert bluesky.sanitize_domain('  https://bsky.social  ') == 'https://bsky.social'


def test_endpoint_has_exactly_one_slash():
    expected = 'https://bsky.social/xrpc/com.atproto.server.createSession'
    assert bluesky.endpoint('https://bsky.social', bluesky.CREATE_SESSION) == expected
    assert bluesky.endpoint('https://bsky.social/', bluesky.CREATE_SESSION) == expected
    assert bluesky.endpoint('https://bsky.social//', bluesky.CREATE_SESSION) == expected


def test_build_headers():
    assert bluesky.build_headers('UA') == {'Content-Type': 'application/json', 'User-Agent': 'UA'}
    assert bluesky.build_headers('UA', 'tok')['Authorization'] == 'Bearer tok'


def test_redirect_status_is_rejection(fake_http, make_response):
    fake_http.post.return_value = make_response(302, None)
    with pytest.raises(AuthError) as exc_info:
        bluesky.create_session('https://bsky.social', 'alice', 'pw', 'UA', http=fake_http)
    assert exc_info.value.status_code == 302


def test_server_error_is_transport_error(fake_http, make_response):
    fake_http.post.return_value = make_response(503, {'error': 'UpstreamFailure', 'message': 'try later'})
    with pytest.raises(TransportError) as exc_info:
        bluesky.create_record('https://bsky.social', 'tok', {}, 'UA', http=fake_http)
    assert exc_info.value.status_code == 503
    assert exc_info.value.to_dict()['status_code'] == 503


def test_refresh_requires_both_tokens(fake_http, make_response):
    fake_http.post.return_value = make_response(200, {'accessJwt': 'a'})
    with pytest.raises(MalformedResponse) as exc_info:
        bluesky.refresh_session('https://bsky.social', 'r', 'UA', http=fake_http)
    assert exc_info.value.missing == ['refreshJwt']


@pytest.mark.parametrize('uri, url', [
    ('at://did:plc:abc/app.bsky.feed.post/3kxyz', 'https://bsky.app/profile/did:plc:abc/post/3kxyz'),
    ('at://did:plc:abc/app.bsky.feed.like/3kxyz', ''),
    ('', ''),
])
def test_post_url(uri, url):
    assert bluesky.post_url(uri) == url
