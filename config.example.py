# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Nothing here is imported by the app; it lists every variable src/packup/config.py reads.
"""

ENV_VARS = {
    # App / logging
    "PACKUP_APP_NAME": "App display name (default: packup).",
    "PACKUP_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Paths (gitignored)
    "PACKUP_DATA_DIR": "Local data directory; also holds packup.log (default: .local/packup).",
    "PACKUP_DB_PATH": "SQLite database path (default: <data_dir>/packup.sqlite3).",
    # Roles / sessions
    "PACKUP_ADMIN_EMAILS": (
        "Comma/space separated operator emails. Falls back to ADMIN_EMAILS. "
        "Roles are re-derived from this list on every login."
    ),
    "PACKUP_SESSION_TTL_HOURS": "Session lifetime in hours (default: 24).",
    "PACKUP_OPERATOR_SEES_DEFAULTS": (
        "Show default todos in an operator's own list (true/false, default false)."
    ),
    # Error reporting
    "PACKUP_EXPOSE_INTERNAL_ERRORS": (
        "Return raw exception text in 500 responses instead of 'internal error' (dev only)."
    ),
    # Console connector
    "PACKUP_CONSOLE_ENABLED": "Enable console connector (true/false, default true).",
    "PACKUP_CONSOLE_EMAIL": "Log the console in as this email on start (optional).",
}
