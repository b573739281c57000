# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use:
- .env (local, gitignored)
- config_local.py (local safe overrides, gitignored)
"""

ENV_VARS = {
    # App / logging
    "TODO_APP_NAME": "App display name (default: todo).",
    "TODO_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Connectors
    "TODO_CONSOLE_ENABLED": "Enable the console REPL (true/false, default: true).",
    "TODO_MATRIX_ENABLED": "Post timer-driven reminders to Matrix (true/false, default: false).",
    # Reminder state
    "TODO_REDIS_URL": (
        "Redis URL for reminder locks, overdue counters and the reminder switch "
        "(falls back to REDIS_URL; unset => in-memory, per-process state)."
    ),
    "TODO_REDIS_SOCKET_TIMEOUT": "Redis connect/read timeout in seconds (default: 5).",
    # Scheduler
    "TODO_REMINDER_SCHEDULER_ENABLED": "Run the once-a-minute reminder scan (true/false, default: true).",
    "TODO_REMINDER_SCAN_TIMEOUT": "Abandon a scan after N seconds (default: 50, capped at 59).",
    # Matrix
    "TODO_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "TODO_MATRIX_USER_ID": "Matrix user ID (bot).",
    "TODO_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "TODO_MATRIX_ROOMS": "Rooms that receive reminders (empty => first joined room).",
    # Paths (gitignored)
    "TODO_DATA_DIR": "Local data directory, also holds todo.log (default: .local/todo).",
    "TODO_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
    "TODO_MATRIX_STORE_PATH": "Matrix session/E2EE store path (default: <data_dir>/matrix_store).",
}
