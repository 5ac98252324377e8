import os
import sqlite3
import threading
from contextlib import contextmanager


class Database:
    # Serializes writers across the request thread and the task worker
    _lock = threading.RLock()

    @staticmethod
    def connect(path):
        db_dir = os.path.dirname(path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
        return sqlite3.connect(path, timeout=30, check_same_thread=False)

    @classmethod
    @contextmanager
    def transaction(cls, path):
        """
        Open a connection and hold the writer lock for the whole block.
        Commits on success, rolls back if the block raises.
        """
        with cls._lock:
            conn = cls.connect(path)
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()
