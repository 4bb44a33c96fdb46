"""Application configuration with environment variable support."""

import os


class AppConfig:
    """Centralized application configuration."""

    SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
    SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")

    TASKS_TABLE = os.environ.get("TASKS_TABLE", "tasks")
    QUERIES_TABLE = os.environ.get("QUERIES_TABLE", "queries")
    USERS_TABLE = os.environ.get("USERS_TABLE", "users")

    DEFAULT_PAGE_SIZE = int(os.environ.get("DEFAULT_PAGE_SIZE", "10"))
    MAX_PAGE_SIZE = int(os.environ.get("MAX_PAGE_SIZE", "100"))

    # Attempts for conditional writes before giving up with a conflict
    WRITE_RETRY_ATTEMPTS = int(os.environ.get("WRITE_RETRY_ATTEMPTS", "3"))

    # Set by the upstream auth layer once the token is verified
    USER_ID_HEADER = os.environ.get("USER_ID_HEADER", "X-User-Id")
