"""
Supabase client initialization.

This module contains *only* the database connection setup and exposes
`get_supabase()`, which builds one shared client on first use for other
repository modules.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, ClientOptions, create_client  # type: ignore[import-not-found]

# Load environment variables from the project's .env file
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DEFAULT_STORAGE_TIMEOUT_SECONDS = 10.0


@lru_cache(maxsize=1)
def get_supabase(timeout: float = DEFAULT_STORAGE_TIMEOUT_SECONDS) -> Client:
    """
    Return the process-wide Supabase client, creating it on first call.

    Args:
        timeout: HTTP timeout in seconds applied to every storage call

    Raises:
        RuntimeError: If SUPABASE_URL or SUPABASE_KEY is not set.
    """
    # Read credentials from the environment to avoid hard-coding secrets in code.
    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_KEY")

    if not supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return create_client(
        supabase_url,
        supabase_key,
        options=ClientOptions(postgrest_client_timeout=timeout),
    )


__all__ = ["get_supabase"]
