"""
Deferred Tasks
==============

SQLite-backed task queue used to run work outside the request/response cycle.

- One-shot tasks: ``schedule_once('bluesky_send_post', [42])``
- Recurring tasks: ``schedule_recurring('bluesky_refresh_token', WEEK_IN_SECONDS)``

Handlers are registered by name, so a queued row only stores the task name and
its JSON-encoded args. A ``TaskWorker`` thread polls the table and runs due
tasks; the same ``run_pending()`` call can be driven from cron or tests.
"""

import json
import logging
import threading
import time
from datetime import datetime, timezone

from .database import Database
from .logging_service import LoggingService

logger = logging.getLogger(__name__)


class TaskQueue:
    """Named, serializable task queue persisted in SQLite."""

    def __init__(self, db_path):
        self.db_path = db_path
        self._handlers = {}
        self._ensure_schema()

    def _ensure_schema(self):
        with Database.transaction(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS scheduled_tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    args TEXT NOT NULL DEFAULT '[]',
                    run_at REAL NOT NULL,
                    interval INTEGER,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute('CREATE INDEX IF NOT EXISTS idx_tasks_run_at ON scheduled_tasks(run_at)')
            conn.execute('CREATE INDEX IF NOT EXISTS idx_tasks_name ON scheduled_tasks(name)')

    # ===== Registration =====

    def register(self, name, handler):
        """Bind a callable to a task name. Re-registering replaces the handler."""
        self._handlers[name] = handler

    # ===== Scheduling =====

    def schedule_once(self, name, args=None, when=None):
        """
        Queue a single run of ``name``.

        Args:
            name: Registered task name
            args: JSON-serializable list of positional arguments
            when: Unix timestamp; None means "as soon as the worker wakes up"

        Returns:
            The id of the queued row
        """
        run_at = time.time() if when is None else float(when)
        with Database.transaction(self.db_path) as conn:
            cursor = conn.execute(
                'INSERT INTO scheduled_tasks (name, args, run_at, interval, created_at) VALUES (?, ?, ?, NULL, ?)',
                (name, json.dumps(list(args or [])), run_at, _now_iso())
            )
            task_id = cursor.lastrowid
        logger.debug("Scheduled task %s(%s) id=%s", name, args, task_id)
        return task_id

    def enqueue(self, name, *args):
        """Run ``name(*args)`` as soon as possible."""
        return self.schedule_once(name, list(args))

    def schedule_recurring(self, name, interval, first_run=None):
        """
        Schedule ``name`` every ``interval`` seconds.
        Does nothing (and returns False) when the task is already scheduled.
        """
        with Database.transaction(self.db_path) as conn:
            conn.execute('BEGIN IMMEDIATE')
            existing = conn.execute(
                'SELECT id FROM scheduled_tasks WHERE name = ? AND interval IS NOT NULL', (name,)
            ).fetchone()
            if existing:
                return False
            run_at = time.time() if first_run is None else float(first_run)
            conn.execute(
                'INSERT INTO scheduled_tasks (name, args, run_at, interval, created_at) VALUES (?, ?, ?, ?, ?)',
                (name, '[]', run_at, int(interval), _now_iso())
            )
        return True

    def cancel_recurring(self, name):
        """Remove every scheduled run of ``name``. Returns the number of rows removed."""
        with Database.transaction(self.db_path) as conn:
            cursor = conn.execute('DELETE FROM scheduled_tasks WHERE name = ?', (name,))
            return cursor.rowcount

    def next_scheduled(self, name):
        """Unix timestamp of the next run of ``name``, or None."""
        with Database.transaction(self.db_path) as conn:
            row = conn.execute(
                'SELECT MIN(run_at) FROM scheduled_tasks WHERE name = ?', (name,)
            ).fetchone()
        return row[0] if row else None

    def pending(self, name=None):
        """List queued tasks as dicts, soonest first."""
        query = 'SELECT id, name, args, run_at, interval FROM scheduled_tasks'
        params = ()
        if name:
            query += ' WHERE name = ?'
            params = (name,)
        query += ' ORDER BY run_at, id'

        with Database.transaction(self.db_path) as conn:
            rows = conn.execute(query, params).fetchall()

        return [
            {'id': row[0], 'name': row[1], 'args': json.loads(row[2]), 'run_at': row[3], 'interval': row[4]}
            for row in rows
        ]

    # ===== Execution =====

    def _claim_due(self, now):
        """
        Take ownership of every due task in one transaction.
        One-shot rows are deleted, recurring rows are moved to their next run,
        so a task is never handed out twice, even to workers in other processes.
        """
        with Database.transaction(self.db_path) as conn:
            # Database._lock only covers this process; the file lock covers the rest
            conn.execute('BEGIN IMMEDIATE')
            rows = conn.execute(
                'SELECT id, name, args, interval, run_at FROM scheduled_tasks WHERE run_at <= ? ORDER BY run_at, id',
                (now,)
            ).fetchall()

            claimed = []
            for task_id, name, args, interval, run_at in rows:
                if interval:
                    next_run = run_at + interval
                    # Skip missed runs instead of replaying them
                    if next_run <= now:
                        next_run = now + interval
                    cursor = conn.execute(
                        'UPDATE scheduled_tasks SET run_at = ? WHERE id = ? AND run_at = ?',
                        (next_run, task_id, run_at)
                    )
                else:
                    cursor = conn.execute('DELETE FROM scheduled_tasks WHERE id = ?', (task_id,))
                if cursor.rowcount == 1:
                    claimed.append((task_id, name, json.loads(args)))
        return claimed

    def run_pending(self, now=None):
        """
        Run every task that is due. Handler errors are logged and never
        propagate, so one failing task does not block the rest.

        Returns:
            Number of tasks executed
        """
        now = time.time() if now is None else now
        executed = 0

        for task_id, name, args in self._claim_due(now):
            handler = self._handlers.get(name)
            if handler is None:
                LoggingService.warning('tasks', f"No handler registered for task '{name}'",
                                       {'task_id': task_id, 'args': args})
                continue
            try:
                handler(*args)
            except Exception as e:
                LoggingService.log_error_with_traceback('tasks', e, {'task': name, 'task_id': task_id, 'args': args})
            executed += 1

        return executed


class TaskWorker:
    """Background thread that drains a TaskQueue."""

    def __init__(self, queue, poll_interval=5.0, app=None):
        self.queue = queue
        self.poll_interval = poll_interval
        self.app = app
        self._stop = threading.Event()
        self._thread = None

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name='skyshare-task-worker', daemon=True)
        self._thread.start()
        logger.info("Task worker started (poll every %ss)", self.poll_interval)

    def stop(self, timeout=None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _tick(self):
        if self.app is not None:
            with self.app.app_context():
                return self.queue.run_pending()
        return self.queue.run_pending()

    def _run(self):
        while not self._stop.is_set():
            try:
                self._tick()
            except Exception:
                logger.exception("Task worker tick failed")
            self._stop.wait(self.poll_interval)


def _now_iso():
    return datetime.now(timezone.utc).isoformat()
