"""
Bluesky Platform Adapter
========================

Talks XRPC to an AT Protocol PDS (https://bsky.social by default):

- com.atproto.server.createSession   (identifier + app password -> tokens + DID)
- com.atproto.server.refreshSession  (refresh token -> new token pair)
- com.atproto.repo.createRecord      (access token -> app.bsky.feed.post record)

Functions raise the errors from ``..errors`` instead of returning status dicts;
callers decide what is logged and what is recorded.
"""

from urllib.parse import urlparse

import requests

from ..errors import AuthError, MalformedResponse, TransportError

CREATE_SESSION = 'xrpc/com.atproto.server.createSession'
REFRESH_SESSION = 'xrpc/com.atproto.server.refreshSession'
CREATE_RECORD = 'xrpc/com.atproto.repo.createRecord'

DEFAULT_TIMEOUT = 30


def sanitize_domain(value):
    """
    Validate a user-entered service URL before it is stored.

    Returns:
        The trimmed URL

    Raises:
        ValueError: when the value is not an absolute http(s) URL
    """
    value = (value or '').strip()
    parsed = urlparse(value)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ValueError(f'"{value}" is not a valid URL including "http(s)"')
    if parsed.query or parsed.fragment or any(c.isspace() for c in value):
        raise ValueError(f'"{value}" must be a plain service URL')
    return value


def normalize_domain(value):
    """Coerce a service URL to end with exactly one slash."""
    return (value or '').strip().rstrip('/') + '/'


def endpoint(domain, path):
    return normalize_domain(domain) + path


def build_headers(user_agent, token=None):
    headers = {
        'Content-Type': 'application/json',
        'User-Agent': user_agent,
    }
    if token:
        headers['Authorization'] = f'Bearer {token}'
    return headers


def _post(http, url, headers, payload, timeout):
    """POST and return (status, parsed JSON or None). Raises TransportError."""
    try:
        if payload is None:
            resp = http.post(url, headers=headers, timeout=timeout)
        else:
            resp = http.post(url, headers=headers, json=payload, timeout=timeout)
    except requests.RequestException as e:
        raise TransportError(f'{url}: {e}') from e

    try:
        data = resp.json()
    except ValueError:
        data = None
    return resp.status_code, data


def _raise_for_status(action, status, data):
    """A 5xx status is a server failure, anything else >= 300 is a rejection."""
    if status < 300:
        return
    data = data if isinstance(data, dict) else {}
    error = data.get('error')
    message = data.get('message') or error or 'no details'
    if status >= 500:
        raise TransportError(f'{action} failed ({status}): {message}', status_code=status)
    raise AuthError(f'{action} rejected ({status}): {message}', status_code=status, error=error, body=data)


def _require(action, data, fields):
    data = data if isinstance(data, dict) else {}
    missing = [name for name in fields if not data.get(name)]
    if missing:
        raise MalformedResponse(f'{action} response is missing {", ".join(missing)}', missing=missing)
    return data


def create_session(domain, identifier, password, user_agent, http=requests, timeout=DEFAULT_TIMEOUT):
    """
    Log in with an identifier (handle or email) and app password.

    Returns:
        dict with accessJwt, refreshJwt and did
    """
    status, data = _post(
        http,
        endpoint(domain, CREATE_SESSION),
        build_headers(user_agent),
        {'identifier': identifier, 'password': password},
        timeout,
    )
    _raise_for_status('createSession', status, data)
    return _require('createSession', data, ('accessJwt', 'refreshJwt', 'did'))


def refresh_session(domain, refresh_token, user_agent, http=requests, timeout=DEFAULT_TIMEOUT):
    """
    Exchange the refresh token for a new token pair.

    Returns:
        dict with accessJwt and refreshJwt
    """
    status, data = _post(
        http,
        endpoint(domain, REFRESH_SESSION),
        build_headers(user_agent, refresh_token),
        None,
        timeout,
    )
    _raise_for_status('refreshSession', status, data)
    return _require('refreshSession', data, ('accessJwt', 'refreshJwt'))


def create_record(domain, access_token, body, user_agent, http=requests, timeout=DEFAULT_TIMEOUT):
    """
    Create a repository record.

    Args:
        body: dict with collection, repo, did and record

    Returns:
        The response JSON (uri and cid on success)
    """
    status, data = _post(
        http,
        endpoint(domain, CREATE_RECORD),
        build_headers(user_agent, access_token),
        body,
        timeout,
    )
    _raise_for_status('createRecord', status, data)
    return data if isinstance(data, dict) else {}


def post_url(at_uri):
    """
    Map ``at://did:plc:abc/app.bsky.feed.post/3kxyz`` to its bsky.app web URL.
    Returns '' when the URI has an unexpected shape.
    """
    if not at_uri or not at_uri.startswith('at://'):
        return ''
    parts = at_uri[len('at://'):].split('/')
    if len(parts) != 3 or parts[1] != 'app.bsky.feed.post':
        return ''
    return f'https://bsky.app/profile/{parts[0]}/post/{parts[2]}'
