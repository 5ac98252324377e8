"""
Settings Database with Encryption
=================================

Key-value store for site settings with encryption for sensitive values.
Uses Fernet symmetric encryption (AES-128-CBC) keyed from the Flask SECRET_KEY.
"""

import base64
import hashlib
import logging
import sqlite3
from datetime import datetime

from cryptography.fernet import Fernet, InvalidToken

from skyshare.core.database import Database

logger = logging.getLogger(__name__)


def derive_encryption_key(secret):
    """
    Derive a Fernet-compatible key (32 bytes, base64 encoded) from a secret.
    """
    key_bytes = hashlib.sha256((secret or 'default-insecure-key').encode()).digest()
    return base64.urlsafe_b64encode(key_bytes)


class SettingsStore:
    """
    Settings table accessor.

    Every write goes through ``Database.transaction`` so concurrent writers
    (request thread, task worker) are serialized, and ``set_many`` updates
    several keys in a single transaction.
    """

    def __init__(self, db_path, secret_key=None):
        self.db_path = db_path
        self._fernet = Fernet(derive_encryption_key(secret_key))
        self.init_db()

    def init_db(self):
        """Initialize settings database"""
        with Database.transaction(self.db_path) as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS settings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    category TEXT NOT NULL,
                    key TEXT NOT NULL UNIQUE,
                    value TEXT,
                    is_secret BOOLEAN DEFAULT 0,
                    description TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')
            conn.execute('CREATE INDEX IF NOT EXISTS idx_settings_category ON settings(category)')
        return self.db_path

    # ===== Encryption =====

    def encrypt_value(self, value):
        if not value:
            return value
        return self._fernet.encrypt(value.encode()).decode()

    def decrypt_value(self, encrypted_value):
        if not encrypted_value:
            return encrypted_value
        try:
            return self._fernet.decrypt(encrypted_value.encode()).decode()
        except InvalidToken:
            # Written with another SECRET_KEY; unreadable rather than garbage
            logger.warning("Could not decrypt a stored secret (SECRET_KEY changed?)")
            return None

    # ===== Reads =====

    def get(self, key, default=None):
        """Get a setting value by key. Empty values read as ``default``."""
        try:
            with Database.transaction(self.db_path) as conn:
                row = conn.execute('SELECT value, is_secret FROM settings WHERE key = ?', (key,)).fetchone()
        except sqlite3.Error as e:
            logger.error("Error getting setting %s: %s", key, e)
            return default

        if not row:
            return default
        value, is_secret = row
        if is_secret and value:
            value = self.decrypt_value(value)
        return value if value else default

    def get_many(self, keys):
        """Read several keys in one transaction (a consistent snapshot)."""
        values = {key: None for key in keys}
        placeholders = ', '.join('?' for _ in keys)
        try:
            with Database.transaction(self.db_path) as conn:
                rows = conn.execute(
                    f'SELECT key, value, is_secret FROM settings WHERE key IN ({placeholders})', tuple(keys)
                ).fetchall()
        except sqlite3.Error as e:
            logger.error("Error getting settings %s: %s", keys, e)
            return values

        for key, value, is_secret in rows:
            if is_secret and value:
                value = self.decrypt_value(value)
            values[key] = value or None
        return values

    # ===== Writes =====

    def set(self, key, value, category='general', is_secret=False, description=None):
        """Set a setting value"""
        self.set_many({key: value}, category=category, secret_keys=[key] if is_secret else (),
                      descriptions={key: description} if description else None)
        return True

    def set_many(self, values, category='general', secret_keys=(), descriptions=None):
        """
        Write several settings atomically: either every key is updated or none is.
        Keys listed in ``secret_keys`` are encrypted at rest.
        """
        descriptions = descriptions or {}
        now = datetime.now().isoformat()
        with Database.transaction(self.db_path) as conn:
            for key, value in values.items():
                is_secret = key in secret_keys
                stored_value = self.encrypt_value(value) if is_secret and value else value
                conn.execute('''
                    INSERT INTO settings (category, key, value, is_secret, description, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        category = excluded.category,
                        is_secret = excluded.is_secret,
                        description = COALESCE(excluded.description, settings.description),
                        updated_at = excluded.updated_at
                ''', (category, key, stored_value, is_secret, descriptions.get(key), now))

    def delete(self, key):
        """Delete a setting"""
        with Database.transaction(self.db_path) as conn:
            cursor = conn.execute('DELETE FROM settings WHERE key = ?', (key,))
            return cursor.rowcount > 0

    def get_all(self, category=None, mask_secrets=True):
        """
        Get all settings, optionally filtered by category.
        Secrets are masked by default (show only last 4 chars).
        """
        query = 'SELECT id, category, key, value, is_secret, description, updated_at FROM settings'
        params = ()
        if category:
            query += ' WHERE category = ?'
            params = (category,)
        query += ' ORDER BY category, key'

        try:
            with Database.transaction(self.db_path) as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            logger.error("Error getting all settings: %s", e)
            return []

        settings = []
        for setting_id, cat, key, value, is_secret, description, updated_at in rows:
            display_value = value
            if is_secret and value:
                display_value = self.decrypt_value(value)
                if mask_secrets and display_value:
                    display_value = mask_secret(display_value)

            settings.append({
                'id': setting_id,
                'category': cat,
                'key': key,
                'value': display_value,
                'is_secret': bool(is_secret),
                'description': description,
                'updated_at': updated_at
            })
        return settings


def mask_secret(value):
    """Show only the last 4 characters of a secret"""
    if not value:
        return value
    if len(value) <= 4:
        return '****'
    return '*' * (len(value) - 4) + value[-4:]


# Keys and field definitions for the Bluesky settings page
BLUESKY_CATEGORY = 'bluesky'

SETTINGS_SCHEMA = {
    'bluesky': {
        'label': 'Share on Bluesky',
        'settings': [
            {'key': 'BLUESKY_DOMAIN', 'label': 'Bluesky Domain', 'type': 'url', 'is_secret': False,
             'description': 'The domain of your Bluesky instance. (This has to be a valid URL including "http(s)")'},
            {'key': 'BLUESKY_IDENTIFIER', 'label': 'Bluesky "Identifier"', 'type': 'text', 'is_secret': False,
             'description': 'Your Bluesky identifier.'},
            {'key': 'BLUESKY_PASSWORD', 'label': 'Password', 'type': 'password', 'is_secret': True,
             'description': 'Your Bluesky application password. It is needed to get an Access-Token and will not be stored anywhere.'},
        ]
    },
}
