"""
Supabase client initialization.

This module contains *only* the database connection setup and exposes a single
lazily-created async `AsyncClient` for the repository modules to share.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import AsyncClient, acreate_client  # type: ignore[import-not-found]

# Load environment variables from the .env file at the project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

_client: Optional[AsyncClient] = None
_client_lock = asyncio.Lock()


def read_credentials() -> Tuple[str, str]:
    """Read credentials from the environment to avoid hard-coding secrets in code."""

    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_KEY")

    if not url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return url, key


async def get_supabase() -> AsyncClient:
    """Return the process-wide Supabase client, creating it on first use."""

    global _client
    if _client is None:
        async with _client_lock:
            if _client is None:
                url, key = read_credentials()
                _client = await acreate_client(url, key)
    return _client


__all__ = ["get_supabase", "read_credentials"]
