# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "JOBS_APP_NAME": "App display name (default: job-scheduler).",
    "JOBS_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Connectors
    "JOBS_CONSOLE_ENABLED": "Run the console REPL (true/false, default: true).",
    # Store / queues
    "JOBS_DATA_DIR": "Local data directory for logs and the store (default: .local/jobs).",
    "JOBS_STORE_BACKEND": "sqlite or memory (default: sqlite).",
    "JOBS_STORE_PATH": "SQLite store path (default: <data_dir>/jobs.sqlite3).",
    "JOBS_TODO_CHANNEL": "Channel carrying new/updated task encodings (default: todo-list).",
    "JOBS_CONTROL_CHANNEL": "Channel carrying update/delete events (default: running-list).",
    # Dispatcher
    "JOBS_POLL_INTERVAL": "Seconds between dispatcher ticks (default: 10).",
    "JOBS_STOP_TIMEOUT": "Seconds to wait for a cancelled executor before force-cancelling (default: 5).",
    # API layer
    "JOBS_CONTENT_MAX_LENGTH": "Maximum job content length accepted by the API helper (default: 64).",
}
