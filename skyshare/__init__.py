"""
SkyShare - Share on Bluesky for Flask sites
===========================================

Cross-posts published articles to Bluesky (AT Protocol):
- Bluesky connection settings page (credentials encrypted at rest)
- News/article store whose publish action queues a share
- Background task worker for deferred sends and the weekly token refresh

Usage:
    from flask import Flask
    from skyshare import SkyShare

    app = Flask(__name__)
    skyshare = SkyShare(app)
"""

__version__ = '0.1.0'
__author__ = 'Laurence Stephan'

import os

from .core.config import Config
from .core.tasks import TaskWorker
from .modules.crosspost import CrossPostService, crosspost_service

_DB_FILES = {
    'SETTINGS_DB': 'settings.db',
    'NEWS_DB': 'news.db',
    'TASKS_DB': 'tasks.db',
    'ANALYTICS_DB': 'analytics_log.db',
}

_CONFIG_DEFAULTS = (
    'SITE_URL', 'BLUESKY_DEFAULT_DOMAIN', 'BLUESKY_HTTP_TIMEOUT', 'BLUESKY_TEXT_LENGTH',
    'BLUESKY_EXCERPT_LENGTH', 'BLUESKY_EXCERPT_MORE', 'BLUESKY_REFRESH_INTERVAL',
    'TASK_POLL_INTERVAL', 'SKYSHARE_START_WORKER', 'SKYSHARE_LOGIN_URL',
)


class SkyShare:
    """
    Flask extension wiring the cross-post service, the admin blueprints
    and the task worker into an app.

    Lifecycle hooks for the host:
        install()   -- schedule the weekly token refresh (runs on init_app)
        uninstall() -- remove it again
    """

    def __init__(self, app=None, config=None, crosspost=None):
        self._config = dict(config or {})
        if crosspost is None:
            # The module singleton serves the first app; later apps get their own service
            crosspost = crosspost_service if crosspost_service.app is None else CrossPostService()
        self.crosspost = crosspost
        self.worker = None
        self._registered = []

        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        for key, value in self._config.items():
            app.config[key] = value

        self._apply_config_defaults(app)
        self._setup_database_dir(app)

        from .modules.news.routes import init_news_db
        init_news_db(app.config['NEWS_DB'])

        self.crosspost.init_app(app)
        self._register_blueprints(app)

        app.extensions['skyshare'] = self

        with app.app_context():
            self.install()

        if app.config.get('SKYSHARE_START_WORKER') and not app.config.get('TESTING'):
            self.start_worker(app)

    def _apply_config_defaults(self, app):
        """app.config wins; DB paths follow DB_DIR; everything else falls back to Config"""
        custom_dir = 'DB_DIR' in app.config
        app.config.setdefault('DB_DIR', Config.DB_DIR)
        for key, filename in _DB_FILES.items():
            if not app.config.get(key):
                if custom_dir:
                    app.config[key] = os.path.join(app.config['DB_DIR'], filename)
                else:
                    app.config[key] = getattr(Config, key)

        for key in _CONFIG_DEFAULTS:
            app.config.setdefault(key, getattr(Config, key))

        if not app.config.get('SECRET_KEY') and Config.SECRET_KEY:
            app.config['SECRET_KEY'] = Config.SECRET_KEY

    def _setup_database_dir(self, app):
        os.makedirs(app.config['DB_DIR'], exist_ok=True)

    def _register_blueprints(self, app):
        from .modules.news import news_bp
        from .modules.settings import settings_bp

        for name, blueprint in (('news', news_bp), ('settings', settings_bp)):
            if blueprint.name not in app.blueprints:
                app.register_blueprint(blueprint)
            self._registered.append(name)

    def get_registered_modules(self):
        return list(self._registered)

    # ===== Lifecycle hooks =====

    def install(self):
        self.crosspost.install()

    def uninstall(self):
        self.stop_worker()
        self.crosspost.uninstall()

    # ===== Background worker =====

    def start_worker(self, app):
        if self.worker is None:
            self.worker = TaskWorker(self.crosspost.tasks, app.config.get('TASK_POLL_INTERVAL', 5), app=app)
        self.worker.start()
        return self.worker

    def stop_worker(self):
        if self.worker is not None:
            self.worker.stop(timeout=5)


__all__ = ['SkyShare', 'CrossPostService', '__version__']
