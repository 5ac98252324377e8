"""
Cross-Post Service
==================

Singleton dispatcher that shares published articles on Bluesky.
Lazy-initialized from Flask app config (same pattern as the other services).

Flow:
    on_publish(id)  -- request thread, only queues a task
    send(id)        -- task worker: refresh session, build record, createRecord
    refresh_token() -- weekly task keeping the session alive
"""

import os
import sqlite3

import requests

from skyshare.core.config import Config
from skyshare.core.logging_service import LoggingService
from skyshare.core.tasks import TaskQueue
from skyshare.modules.settings.database import SettingsStore
from .content_transform import get_excerpt, get_text_excerpt, to_iso_utc
from .errors import CrossPostError
from .models import ExternalEmbed, OutboundPost
from .platforms import bluesky
from .session_manager import ACCESS_TOKEN_KEY, LOG_SOURCE, SessionManager

SEND_POST_TASK = 'bluesky_send_post'
REFRESH_TOKEN_TASK = 'bluesky_refresh_token'


class CrossPostService:
    """Cross-posting service. Reads config from Flask app.config at call time."""

    def __init__(self, settings=None, tasks=None, content_loader=None, http=requests, app=None):
        self.settings = settings
        self.tasks = tasks
        self.content_loader = content_loader
        self.http = http
        self.app = None
        self._session = None
        # Collaborators passed in here survive init_app; the rest follow the app
        self._injected = {
            'settings': settings is not None,
            'tasks': tasks is not None,
            'content_loader': content_loader is not None,
        }

        if tasks is not None:
            self.register_tasks()
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        """Wire the settings store, task queue and article loader from app config"""
        # INTEGRATION: Reads SETTINGS_DB, TASKS_DB, NEWS_DB and SECRET_KEY.
        # Each call rebinds to the given app; the last app wins.
        if not self._injected['settings']:
            self.settings = SettingsStore(
                app.config.get('SETTINGS_DB', Config.SETTINGS_DB),
                app.config.get('SECRET_KEY'),
            )
        if not self._injected['tasks']:
            self.tasks = TaskQueue(app.config.get('TASKS_DB', Config.TASKS_DB))
        if not self._injected['content_loader']:
            from skyshare.modules.news.routes import load_post
            news_db = app.config.get('NEWS_DB', Config.NEWS_DB)
            site_url = app.config.get('SITE_URL', Config.SITE_URL)
            self.content_loader = lambda content_id: load_post(content_id, news_db, site_url)

        self.app = app
        self._session = None
        self.register_tasks()
        app.extensions['skyshare_crosspost'] = self

    def _get_config(self, key, default=''):
        """Get config value: app.config > Config class > env var."""
        try:
            from flask import current_app
            val = current_app.config.get(key)
            if val:
                return val
        except RuntimeError:
            pass
        if hasattr(Config, key):
            return getattr(Config, key)
        return os.getenv(key, default)

    def _require_ready(self):
        if self.settings is None or self.tasks is None:
            raise RuntimeError('CrossPostService is not initialised; call init_app(app) first')

    @property
    def user_agent(self):
        from skyshare import __version__
        site_url = self._get_config('SITE_URL', '')
        return f'SkyShare/{__version__}; {site_url}; Share on Bluesky'

    @property
    def session(self):
        """SessionManager bound to this service's settings store."""
        self._require_ready()
        if self._session is None:
            self._session = SessionManager(
                self.settings,
                self.user_agent,
                default_domain=self._get_config('BLUESKY_DEFAULT_DOMAIN', 'https://bsky.social'),
                http=self.http,
                timeout=int(self._get_config('BLUESKY_HTTP_TIMEOUT', bluesky.DEFAULT_TIMEOUT)),
            )
        return self._session

    # ===== Lifecycle =====

    def register_tasks(self):
        self.tasks.register(SEND_POST_TASK, self.send)
        self.tasks.register(REFRESH_TOKEN_TASK, self.refresh_token)

    def install(self):
        """Schedule the recurring token refresh (idempotent)."""
        self._require_ready()
        interval = int(self._get_config('BLUESKY_REFRESH_INTERVAL', Config.BLUESKY_REFRESH_INTERVAL))
        if self.tasks.schedule_recurring(REFRESH_TOKEN_TASK, interval):
            LoggingService.info(LOG_SOURCE, 'Scheduled Bluesky token refresh', {'interval': interval})

    def uninstall(self):
        """Cancel the recurring token refresh."""
        self._require_ready()
        removed = self.tasks.cancel_recurring(REFRESH_TOKEN_TASK)
        LoggingService.info(LOG_SOURCE, 'Removed Bluesky token refresh schedule', {'removed': removed})

    # ===== Dispatch =====

    def on_publish(self, content_id):
        """
        Queue a Bluesky share for a freshly published article.

        Only queues when an access token exists; otherwise crossposting is
        simply not configured. Never raises into the publishing request.

        Returns:
            True when a send task was queued
        """
        self._require_ready()
        if not self.settings.get(ACCESS_TOKEN_KEY):
            return False

        try:
            self.tasks.schedule_once(SEND_POST_TASK, [content_id])
        except sqlite3.Error as e:
            LoggingService.error(LOG_SOURCE, f'Could not queue Bluesky share for {content_id}: {e}',
                                 {'content_id': content_id})
            return False

        LoggingService.info(LOG_SOURCE, f'Queued Bluesky share for content {content_id}', {'content_id': content_id})
        return True

    def refresh_token(self):
        """Task handler for the recurring refresh."""
        return self.session.refresh_quietly()

    def build_post(self, post):
        """Build the outbound record for a post."""
        more = self._get_config('BLUESKY_EXCERPT_MORE', ' [...]')
        text_length = int(self._get_config('BLUESKY_TEXT_LENGTH', 400))
        excerpt_length = int(self._get_config('BLUESKY_EXCERPT_LENGTH', 55))

        return OutboundPost(
            text=get_text_excerpt(post, text_length, more),
            created_at=to_iso_utc(post.published_at),
            embed=ExternalEmbed(
                uri=post.shortlink,
                title=post.title,
                description=get_excerpt(post, excerpt_length, more),
            ),
        )

    def send(self, content_id):
        """
        Share one article on Bluesky. Runs in the task worker.

        Returns:
            dict with {success: bool, url: str, error: str}
        """
        session = self.session

        # Best effort: a stale token is rejected by the server anyway
        session.refresh_quietly()

        creds = session.credentials()
        if not (creds.access_token and creds.did and creds.domain):
            LoggingService.debug(LOG_SOURCE, f'Bluesky not configured, skipping content {content_id}')
            return {'success': False, 'url': '', 'error': 'Bluesky is not configured'}

        post = self.content_loader(content_id)
        if post is None:
            LoggingService.warning(LOG_SOURCE, f'Content {content_id} not found, nothing to share',
                                   {'content_id': content_id})
            return {'success': False, 'url': '', 'error': f'Content {content_id} not found'}

        body = self.build_post(post).to_request_body(creds.did)

        try:
            data = bluesky.create_record(
                creds.domain, creds.access_token, body, self.user_agent,
                http=self.http, timeout=session.timeout,
            )
        except CrossPostError as e:
            session.record_failure('send', e, {'content_id': content_id})
            return {'success': False, 'url': '', 'error': str(e)}

        url = bluesky.post_url(data.get('uri', ''))
        LoggingService.info(LOG_SOURCE, f'Shared content {content_id} on Bluesky',
                            {'content_id': content_id, 'uri': data.get('uri'), 'url': url})
        return {'success': True, 'url': url, 'error': ''}

    # ===== Status =====

    def status(self):
        """Connection summary for the settings page and the status API."""
        creds = self.session.credentials()
        next_refresh = self.tasks.next_scheduled(REFRESH_TOKEN_TASK)
        return {
            'connected': creds.is_connected,
            'domain': creds.domain,
            'identifier': creds.identifier,
            'did': creds.did,
            'has_password': bool(creds.password),
            'last_error': self.session.last_error(),
            'next_refresh': to_iso_utc(next_refresh) if next_refresh else None,
        }


# Singleton instance, wired by SkyShare.init_app
crosspost_service = CrossPostService()
