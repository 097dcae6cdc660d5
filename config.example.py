# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TAKT_APP_NAME": "App display name (default: takt).",
    "TAKT_LOG_LEVEL": "Console logging level (default: INFO).",
    # Connectors
    "TAKT_CONSOLE_ENABLED": "Enable console REPL (true/false, default: true).",
    "TAKT_WEBHOOK_ENABLED": "Serve the inbound SMS webhook (true/false, default: false).",
    "TAKT_WEBHOOK_HOST": "Webhook bind host (default: 127.0.0.1).",
    "TAKT_WEBHOOK_PORT": "Webhook bind port (default: 8000).",
    # LLM / OpenRouter
    "TAKT_OPENROUTER_API_KEY": "OpenRouter API key (OPENROUTER_API_KEY is also accepted).",
    "TAKT_OPENROUTER_BASE_URL": "OpenAI-compatible base URL (default: https://openrouter.ai/api/v1).",
    "TAKT_LLM_MODEL": "Extraction model (default: anthropic/claude-sonnet-4).",
    "TAKT_LLM_CONNECT_TIMEOUT_SECONDS": "Connect timeout for the extraction call (default: 5).",
    "TAKT_LLM_READ_TIMEOUT_SECONDS": "Read timeout for the extraction call (default: 25).",
    "TAKT_LLM_MAX_TOKENS": "Max completion tokens (default: 2048).",
    "TAKT_LLM_OFFLINE": "Skip the LLM; every message becomes one undated task (true/false).",
    "TAKT_HTTP_REFERER": "Optional OpenRouter metadata header.",
    "TAKT_APP_TITLE": "Optional OpenRouter metadata header title.",
    # Time
    "TAKT_DEFAULT_TIMEZONE": "IANA zone for senders without a preference (default: America/New_York).",
    # Daily digest
    "TAKT_DIGEST_ENABLED": "Run the in-process digest scheduler (true/false, default: false).",
    "TAKT_DIGEST_INTERVAL_SECONDS": "Scheduler polling interval (default: 60).",
    "TAKT_DIGEST_CONCURRENCY": "Max digests sent at once (default: 4).",
    "TAKT_DIGEST_DEFAULT_TIME": "Local send time for new subscribers, HH:MM (default: 08:00).",
    # Outbound SMS (Twilio)
    "TAKT_TWILIO_ACCOUNT_SID": "Twilio account SID (TWILIO_ACCOUNT_SID is also accepted).",
    "TAKT_TWILIO_AUTH_TOKEN": "Twilio auth token (TWILIO_AUTH_TOKEN is also accepted).",
    "TAKT_TWILIO_PHONE_NUMBER": "Sender number in E.164 form (TWILIO_PHONE_NUMBER is also accepted).",
    # Paths (gitignored)
    "TAKT_DATA_DIR": "Local data directory (default: .local/takt).",
    "TAKT_DB_PATH": "SQLite path (default: <data_dir>/takt.sqlite3).",
}
