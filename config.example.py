# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "SITE_TASKS_APP_NAME": "App display name (default: site-tasks).",
    "SITE_TASKS_LOG_LEVEL": "Console logging level (default: INFO).",
    # Paths (gitignored)
    "SITE_TASKS_DATA_DIR": "Local data directory (default: .local/site_tasks).",
    "SITE_TASKS_DB_PATH": "SQLite path for tasks, projects and users (default: <data_dir>/tasks.sqlite3).",
    # Store
    "SITE_TASKS_STORE_TIMEOUT_SECONDS": "Max wait on a locked database per store call (default: 5.0).",
    # Listing
    "SITE_TASKS_DEFAULT_PAGE_SIZE": "Page size when the request gives none (default: 20).",
    "SITE_TASKS_MAX_PAGE_SIZE": "Upper cap for the limit parameter (default: 100).",
    # Stats
    "SITE_TASKS_DUE_SOON_DAYS": "Window for dueSoon counts and the dueSoon filter (default: 7).",
    "SITE_TASKS_UPCOMING_WINDOW_DAYS": "Window for upcomingDeadlines (default: 14).",
    "SITE_TASKS_UPCOMING_LIMIT": "Max entries in upcomingDeadlines (default: 10).",
    # Dependencies
    "SITE_TASKS_DETECT_CYCLES": "Reject multi-hop dependency cycles on update (true/false, default: true).",
}
