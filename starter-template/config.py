import os
from dotenv import load_dotenv

load_dotenv()

DB_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'databases')


class Config:
    SECRET_KEY = os.getenv('FLASK_SECRET_KEY', 'dev-secret-key-change-in-production')

    # Database paths
    DB_DIR = DB_DIR
    SETTINGS_DB = os.path.join(DB_DIR, 'settings.db')
    NEWS_DB = os.path.join(DB_DIR, 'news.db')
    TASKS_DB = os.path.join(DB_DIR, 'tasks.db')
    ANALYTICS_DB = os.path.join(DB_DIR, 'analytics_log.db')

    # Used for article shortlinks and the Bluesky User-Agent
    SITE_URL = os.getenv('SITE_URL', 'http://localhost:5000')

    # Point at a self-hosted PDS if you run one
    BLUESKY_DEFAULT_DOMAIN = os.getenv('BLUESKY_DEFAULT_DOMAIN', 'https://bsky.social')

    # Dev-only login so the admin pages are reachable
    SKYSHARE_LOGIN_URL = '/admin/login'
