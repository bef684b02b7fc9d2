# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "DAYLINE_APP_NAME": "App display name (default: dayline).",
    "DAYLINE_LOG_LEVEL": "Console logging level (default: INFO).",
    # Session
    "DAYLINE_USER_ID": "User the console acts as (empty => signed out until /login).",
    "DAYLINE_TIMEZONE": "IANA zone for routine start times (empty => machine local zone).",
    # Paths (gitignored)
    "DAYLINE_DATA_DIR": "Local data directory (default: .local/dayline).",
    "DAYLINE_DB_PATH": "Instance store SQLite path (default: <data_dir>/instances.sqlite3).",
    "DAYLINE_SOURCES_PATH": "Planner JSON with tasks/routines/events (default: <data_dir>/planner.json).",
    # Timeline
    "DAYLINE_CARRY_OVER_DAYS": "Days of instances read before a date when building its timeline (default: 1); deferrals landing on the date are found from any origin.",
    "DAYLINE_AFTERNOON_START_HOUR": "First hour of the afternoon section (default: 12).",
    "DAYLINE_EVENING_START_HOUR": "First hour of the evening section (default: 17).",
    # Store
    "DAYLINE_UNIQUE_INSTANCES": "One instance per user/entity/date via a unique index (default: true).",
}
