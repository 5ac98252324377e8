"""
Bluesky Session Manager
=======================

Owns the credential lifecycle stored in the settings table:

- login():   identifier + app password -> access/refresh tokens + DID,
             then the password is wiped
- refresh(): refresh token -> new access/refresh pair (DID untouched)

Failures never retry on their own. The weekly refresh task and the next
publish are the retry path.
"""

import json
import threading
from datetime import datetime, timezone

import requests

from skyshare.core.logging_service import LoggingService
from skyshare.modules.settings.database import BLUESKY_CATEGORY
from .errors import CrossPostError, NotConfigured
from .models import Credentials
from .platforms import bluesky

DOMAIN_KEY = 'BLUESKY_DOMAIN'
IDENTIFIER_KEY = 'BLUESKY_IDENTIFIER'
PASSWORD_KEY = 'BLUESKY_PASSWORD'
ACCESS_TOKEN_KEY = 'BLUESKY_ACCESS_JWT'
REFRESH_TOKEN_KEY = 'BLUESKY_REFRESH_JWT'
DID_KEY = 'BLUESKY_DID'
LAST_ERROR_KEY = 'BLUESKY_LAST_ERROR'

CREDENTIAL_KEYS = (DOMAIN_KEY, IDENTIFIER_KEY, PASSWORD_KEY, ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, DID_KEY)
SECRET_KEYS = (PASSWORD_KEY, ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY)

LOG_SOURCE = 'crosspost'


class SessionManager:
    """Keeps a valid bearer-token session against the configured PDS."""

    # One login/refresh at a time per process, so the token triple stays consistent
    _session_lock = threading.RLock()

    def __init__(self, settings, user_agent, default_domain='https://bsky.social',
                 http=requests, timeout=bluesky.DEFAULT_TIMEOUT):
        self.settings = settings
        self.user_agent = user_agent
        self.default_domain = default_domain
        self.http = http
        self.timeout = timeout

    def credentials(self):
        """Current credentials snapshot."""
        values = self.settings.get_many(CREDENTIAL_KEYS)
        return Credentials(
            domain=values[DOMAIN_KEY] or self.default_domain,
            identifier=values[IDENTIFIER_KEY],
            password=values[PASSWORD_KEY],
            access_token=values[ACCESS_TOKEN_KEY],
            refresh_token=values[REFRESH_TOKEN_KEY],
            did=values[DID_KEY],
        )

    def login(self, domain=None, identifier=None, password=None):
        """
        Exchange identifier + password for a session.

        Missing arguments are read from the settings store. On success the
        token triple is written in one transaction and the stored password is
        cleared; on failure nothing but the last-error record changes.

        Raises:
            NotConfigured, AuthError, TransportError, MalformedResponse
        """
        with self._session_lock:
            stored = self.credentials()
            domain = domain or stored.domain
            identifier = identifier or stored.identifier
            password = password or stored.password

            if not (domain and identifier and password):
                raise NotConfigured('Bluesky domain, identifier and password are required to log in')

            try:
                data = bluesky.create_session(
                    domain, identifier, password, self.user_agent,
                    http=self.http, timeout=self.timeout,
                )
            except CrossPostError as e:
                self.record_failure('login', e, {'domain': domain, 'identifier': identifier})
                raise

            self.settings.set_many({
                ACCESS_TOKEN_KEY: data['accessJwt'],
                REFRESH_TOKEN_KEY: data['refreshJwt'],
                DID_KEY: data['did'],
                PASSWORD_KEY: None,
                LAST_ERROR_KEY: None,
            }, category=BLUESKY_CATEGORY, secret_keys=SECRET_KEYS)

        LoggingService.info(LOG_SOURCE, 'Connected to Bluesky', {'domain': domain, 'did': data['did']})
        return self.credentials()

    def refresh(self):
        """
        Rotate the token pair using the stored refresh token.
        The DID is left untouched; on failure the old tokens stay in place.

        Raises:
            NotConfigured, AuthError, TransportError, MalformedResponse
        """
        with self._session_lock:
            stored = self.credentials()
            if not (stored.domain and stored.refresh_token):
                raise NotConfigured('No Bluesky refresh token stored')

            try:
                data = bluesky.refresh_session(
                    stored.domain, stored.refresh_token, self.user_agent,
                    http=self.http, timeout=self.timeout,
                )
            except CrossPostError as e:
                self.record_failure('refresh', e, {'domain': stored.domain})
                raise

            self.settings.set_many({
                ACCESS_TOKEN_KEY: data['accessJwt'],
                REFRESH_TOKEN_KEY: data['refreshJwt'],
                LAST_ERROR_KEY: None,
            }, category=BLUESKY_CATEGORY, secret_keys=SECRET_KEYS)

        LoggingService.debug(LOG_SOURCE, 'Refreshed Bluesky session', {'domain': stored.domain})
        return self.credentials()

    def maybe_login(self):
        """
        Log in when identifier and password are stored but there is no access
        token yet (e.g. right after the settings form was saved).

        Returns:
            Credentials after a successful login, otherwise None
        """
        stored = self.credentials()
        if not (stored.identifier and stored.password) or stored.access_token:
            return None
        try:
            return self.login()
        except CrossPostError:
            return None

    def refresh_quietly(self):
        """Best-effort refresh for scheduled tasks. Returns True on success."""
        try:
            self.refresh()
        except NotConfigured as e:
            LoggingService.debug(LOG_SOURCE, f'Skipping Bluesky refresh: {e}')
            return False
        except CrossPostError:
            # Already logged and recorded by refresh()
            return False
        return True

    def disconnect(self):
        """Forget the session and any pending password."""
        with self._session_lock:
            self.settings.set_many({
                PASSWORD_KEY: None,
                ACCESS_TOKEN_KEY: None,
                REFRESH_TOKEN_KEY: None,
                DID_KEY: None,
                LAST_ERROR_KEY: None,
            }, category=BLUESKY_CATEGORY, secret_keys=SECRET_KEYS)
        LoggingService.info(LOG_SOURCE, 'Disconnected from Bluesky')

    def last_error(self):
        """The most recent recorded failure as a dict, or None."""
        raw = self.settings.get(LAST_ERROR_KEY)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return {'message': raw}

    def record_failure(self, operation, error, details=None):
        entry = error.to_dict()
        entry['operation'] = operation
        entry['at'] = datetime.now(timezone.utc).isoformat()

        log_details = dict(entry)
        if details:
            log_details.update(details)
        LoggingService.error(LOG_SOURCE, f'Bluesky {operation} failed: {error}', log_details)

        self.settings.set(LAST_ERROR_KEY, json.dumps(entry), category=BLUESKY_CATEGORY)
