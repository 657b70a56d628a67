# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file,
see chronotask.config). Nothing in this file is imported at runtime.

This file exists to make the repo self-documenting without opening chronotask/config.py.
"""

ENV_VARS = {
    # App / logging
    "CHRONOTASK_APP_NAME": "App display name used in the startup banner (default: chronotask).",
    "CHRONOTASK_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Paths (gitignored)
    "CHRONOTASK_DATA_DIR": "Local data directory (default: .local/chronotask).",
    "CHRONOTASK_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
    # Switches
    "CHRONOTASK_SCHEDULER_ENABLED": "Start the background jobs when serving (true/false, default: false).",
    "CHRONOTASK_OVERDUE_NOTIFICATIONS": "Notify the recipient when a task becomes overdue (default: false).",
    "CHRONOTASK_STATS_ENABLED": "Register the update-stats job (default: true).",
    # Engine tuning
    "CHRONOTASK_REMINDER_LEAD_MINUTES": "How long before due_at the one-time reminder fires (default: 60).",
    "CHRONOTASK_REMINDER_MODE": "at_least_once (send, then mark) or claim_first (mark, then send).",
    "CHRONOTASK_RECURRENCE_MODE": "at_least_once (create, then advance) or claim_first (advance, then create).",
    "CHRONOTASK_RETENTION_DAYS": "Completed non-recurring tasks older than this are deleted (default: 30).",
    # Cadences
    "CHRONOTASK_OVERDUE_EVERY_MINUTES": "check-overdue cadence (default: 5).",
    "CHRONOTASK_REMINDER_EVERY_MINUTES": "send-reminders cadence (default: 1).",
    "CHRONOTASK_RECURRENCE_EVERY_MINUTES": "process-recurring cadence (default: 60).",
    "CHRONOTASK_CLEANUP_AT": "cleanup-tasks time of day, HH:MM in UTC (default: 02:00).",
    "CHRONOTASK_STATS_EVERY_MINUTES": "update-stats cadence (default: 60).",
}
