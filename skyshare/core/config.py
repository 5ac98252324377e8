import os
from dotenv import load_dotenv

load_dotenv(override=True)

WEEK_IN_SECONDS = 7 * 24 * 60 * 60


class Config:
    """
    Base configuration for SkyShare.
    Projects should provide database paths via environment variables.
    """
    # Flask settings
    SECRET_KEY = os.getenv('FLASK_SECRET_KEY') or os.getenv('SECRET_KEY')

    # Get DB_DIR from environment, or use a default if not set
    DB_DIR = os.getenv('DB_DIR', os.path.join(os.getcwd(), 'databases'))

    # Database paths - use environment variables or fallback to DB_DIR
    SETTINGS_DB = os.getenv('SETTINGS_DB', os.path.join(DB_DIR, "settings.db"))
    NEWS_DB = os.getenv('NEWS_DB', os.path.join(DB_DIR, "news.db"))
    TASKS_DB = os.getenv('TASKS_DB', os.path.join(DB_DIR, "tasks.db"))
    ANALYTICS_DB = os.getenv('ANALYTICS_DB', os.path.join(DB_DIR, "analytics_log.db"))

    # Public site URL, used for shortlinks and the User-Agent
    SITE_URL = os.getenv('SITE_URL', 'http://localhost:5000')

    # Bluesky
    BLUESKY_DEFAULT_DOMAIN = os.getenv('BLUESKY_DEFAULT_DOMAIN', 'https://bsky.social')
    BLUESKY_HTTP_TIMEOUT = int(os.getenv('BLUESKY_HTTP_TIMEOUT', '30'))
    BLUESKY_TEXT_LENGTH = int(os.getenv('BLUESKY_TEXT_LENGTH', '400'))
    BLUESKY_EXCERPT_LENGTH = int(os.getenv('BLUESKY_EXCERPT_LENGTH', '55'))
    BLUESKY_EXCERPT_MORE = os.getenv('BLUESKY_EXCERPT_MORE', ' [...]')
    BLUESKY_REFRESH_INTERVAL = int(os.getenv('BLUESKY_REFRESH_INTERVAL', str(WEEK_IN_SECONDS)))

    # Background task worker
    TASK_POLL_INTERVAL = float(os.getenv('TASK_POLL_INTERVAL', '5'))
    SKYSHARE_START_WORKER = os.getenv('SKYSHARE_START_WORKER', 'true').lower() in ('1', 'true', 'yes')

    # Where admin routes send unauthenticated users
    SKYSHARE_LOGIN_URL = os.getenv('SKYSHARE_LOGIN_URL', '/admin/login')
