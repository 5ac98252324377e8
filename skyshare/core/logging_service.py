"""
Centralized logging service for SkyShare.
Provides structured logging with database storage and easy integration.

Every entry is also forwarded to the standard ``logging`` module so that
worker output shows up on stdout even when the log database is unavailable.
"""

import json
import logging
import sqlite3
import traceback
from datetime import datetime

from flask import current_app, request, has_app_context, has_request_context

from .database import Database
from .config import Config

_stdlib_logger = logging.getLogger('skyshare')


class LoggingService:
    """Centralized logging service for application-wide logging"""

    @staticmethod
    def _db_path():
        """Log database path: app.config > Config"""
        if has_app_context():
            path = current_app.config.get('ANALYTICS_DB')
            if path:
                return path
        return Config.ANALYTICS_DB

    @staticmethod
    def _ensure_logs_table(conn):
        """Ensure the app_logs table exists"""
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS app_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                level TEXT NOT NULL,
                source TEXT NOT NULL,
                message TEXT NOT NULL,
                details TEXT,
                ip_address TEXT,
                user_agent TEXT,
                request_path TEXT,
                user_id TEXT
            )
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_logs_timestamp
            ON app_logs(timestamp DESC)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_logs_source
            ON app_logs(source)
        """)

    @staticmethod
    def _get_request_context():
        """Extract request context information"""
        if not has_request_context():
            return None, None, None

        ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
        if ip_address and ',' in ip_address:
            ip_address = ip_address.split(',')[0].strip()

        return ip_address, request.headers.get('User-Agent', ''), request.path

    @staticmethod
    def log(level, source, message, details=None, user_id=None):
        """
        Log a message to the database

        Args:
            level (str): Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            source (str): Source component (crosspost, settings, tasks, etc.)
            message (str): Main log message
            details (str/dict): Additional details (will be JSON-encoded if dict)
            user_id (str): Optional user identifier
        """
        level = level.upper()
        if isinstance(details, dict):
            details = json.dumps(details, indent=2, default=str)

        _stdlib_logger.log(
            getattr(logging, level, logging.INFO),
            "[%s] %s%s", source, message, f" | {details}" if details else ''
        )

        ip_address, user_agent, request_path = LoggingService._get_request_context()
        try:
            with Database.transaction(LoggingService._db_path()) as conn:
                LoggingService._ensure_logs_table(conn)
                conn.execute("""
                    INSERT INTO app_logs
                    (timestamp, level, source, message, details, ip_address, user_agent, request_path, user_id)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    datetime.now().isoformat(), level, source, message, details,
                    ip_address, user_agent, request_path, user_id
                ))
        except sqlite3.Error as e:
            _stdlib_logger.warning("Logging service error: %s", e)

    @staticmethod
    def debug(source, message, details=None, user_id=None):
        LoggingService.log('DEBUG', source, message, details, user_id)

    @staticmethod
    def info(source, message, details=None, user_id=None):
        LoggingService.log('INFO', source, message, details, user_id)

    @staticmethod
    def warning(source, message, details=None, user_id=None):
        LoggingService.log('WARNING', source, message, details, user_id)

    @staticmethod
    def error(source, message, details=None, user_id=None):
        LoggingService.log('ERROR', source, message, details, user_id)

    @staticmethod
    def log_error_with_traceback(source, error, details=None):
        """Log error with full traceback"""
        error_details = {
            'error_type': type(error).__name__,
            'error_message': str(error),
            'traceback': traceback.format_exc()
        }
        if details:
            error_details['additional_details'] = details

        LoggingService.error(source, f"Exception occurred: {type(error).__name__}", error_details)

    @staticmethod
    def recent(source=None, limit=20):
        """Most recent log entries, newest first"""
        try:
            with Database.transaction(LoggingService._db_path()) as conn:
                LoggingService._ensure_logs_table(conn)
                if source:
                    rows = conn.execute("""
                        SELECT timestamp, level, source, message, details
                        FROM app_logs WHERE source = ?
                        ORDER BY id DESC LIMIT ?
                    """, (source, limit)).fetchall()
                else:
                    rows = conn.execute("""
                        SELECT timestamp, level, source, message, details
                        FROM app_logs ORDER BY id DESC LIMIT ?
                    """, (limit,)).fetchall()
        except sqlite3.Error as e:
            _stdlib_logger.warning("Failed to read logs: %s", e)
            return []

        columns = ['timestamp', 'level', 'source', 'message', 'details']
        return [dict(zip(columns, row)) for row in rows]
