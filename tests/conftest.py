"""
Shared fixtures for the SkyShare test suite.

HTTP is never real: every Bluesky call goes through a MagicMock standing in
for the ``requests`` module, injected via the ``http`` argument.

Run with: pytest tests/ -v
Install with: pip install -e ".[dev]"
"""

import os
import shutil
import tempfile
from unittest.mock import MagicMock

import pytest
from flask import Flask

from skyshare import SkyShare
from skyshare.core.config import Config
from skyshare.core.tasks import TaskQueue
from skyshare.modules.crosspost import CrossPostService, SessionManager
from skyshare.modules.settings.database import SettingsStore

USER_AGENT = 'SkyShare/test; https://x.test; Share on Bluesky'


@pytest.fixture
def tmp_db_dir():
    """Create a temporary directory for test databases, cleaned up after."""
    d = tempfile.mkdtemp(prefix="skyshare-test-")
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture(autouse=True)
def isolated_log_db(tmp_db_dir, monkeypatch):
    """Log entries written outside an app context land in the temp dir."""
    monkeypatch.setattr(Config, 'ANALYTICS_DB', os.path.join(tmp_db_dir, 'analytics_log.db'))


@pytest.fixture
def make_response():
    """Factory for fake ``requests.Response`` objects."""
    def _make(status_code=200, payload=None):
        resp = MagicMock()
        resp.status_code = status_code
        if payload is None:
            resp.json.side_effect = ValueError('No JSON object could be decoded')
        else:
            resp.json.return_value = payload
        return resp
    return _make


@pytest.fixture
def fake_http():
    """Stand-in for the requests module; tests set ``post.return_value`` or ``side_effect``."""
    return MagicMock()


@pytest.fixture
def settings_store(tmp_db_dir):
    return SettingsStore(os.path.join(tmp_db_dir, 'settings.db'), 'test-secret')


@pytest.fixture
def task_queue(tmp_db_dir):
    return TaskQueue(os.path.join(tmp_db_dir, 'tasks.db'))


@pytest.fixture
def session_manager(settings_store, fake_http):
    return SessionManager(settings_store, USER_AGENT, http=fake_http, timeout=30)


@pytest.fixture
def connected(settings_store):
    """Store a working session (what a successful login leaves behind)."""
    settings_store.set_many({
        'BLUESKY_DOMAIN': 'https://bsky.social',
        'BLUESKY_IDENTIFIER': 'alice.bsky.social',
        'BLUESKY_ACCESS_JWT': 'access-1',
        'BLUESKY_REFRESH_JWT': 'refresh-1',
        'BLUESKY_DID': 'did:plc:alice',
    }, category='bluesky', secret_keys=('BLUESKY_ACCESS_JWT', 'BLUESKY_REFRESH_JWT'))
    return settings_store


@pytest.fixture
def app(tmp_db_dir, fake_http):
    """Fully initialised Flask app with SkyShare registered (used by pytest-flask's ``client``)."""
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.config["SECRET_KEY"] = "test-secret"
    app.config["DB_DIR"] = tmp_db_dir
    app.config["SITE_URL"] = "https://x.test"

    SkyShare(app, crosspost=CrossPostService(http=fake_http))
    return app


@pytest.fixture
def service(app):
    return app.extensions['skyshare_crosspost']


@pytest.fixture
def admin_client(client):
    """Test client with an admin session."""
    with client.session_transaction() as sess:
        sess['admin_id'] = 1
    return client
