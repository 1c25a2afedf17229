"""
Supabase error translation.

PostgREST and transport failures are mapped onto the workflow taxonomy so that
callers never see driver-specific exceptions:

- httpx transport errors (connect, read, timeout)   -> StoreUnavailable
- PostgREST connection-pool errors (PGRST000..003)  -> StoreUnavailable
- PostgREST "no rows" (PGRST116)                    -> NotFound
- any other APIError or an error on the response    -> StoreError
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from postgrest.exceptions import APIError

from domain.errors import NotFound, StoreError, StoreUnavailable

logger = logging.getLogger(__name__)

_TRANSIENT_CODES = {"PGRST000", "PGRST001", "PGRST002", "PGRST003"}
_NO_ROWS_CODE = "PGRST116"


async def execute(query: Any, action: str) -> Any:
    """
    Run a PostgREST query builder and return its response.

    Args:
        query: Request builder (e.g. `client.table("sales").select("*")`)
        action: Human-readable description for error messages ("update sale")
    """

    try:
        response = await query.execute()
    except httpx.TransportError as e:
        logger.warning(
            f"Store unreachable while trying to {action}",
            extra={"action": action, "error": str(e)},
        )
        raise StoreUnavailable(f"Failed to {action}: store unavailable ({e})") from e
    except APIError as e:
        code = str(getattr(e, "code", "") or "")
        if code in _TRANSIENT_CODES:
            raise StoreUnavailable(f"Failed to {action}: {e.message}") from e
        if code == _NO_ROWS_CODE:
            raise NotFound(f"Failed to {action}: record not found") from e
        logger.error(
            f"Store rejected request to {action}",
            extra={"action": action, "code": code, "error": getattr(e, "message", str(e))},
        )
        raise StoreError(f"Failed to {action}: {getattr(e, 'message', e)}") from e

    error = getattr(response, "error", None)
    if error:
        raise StoreError(f"Failed to {action}: {error}")
    return response


def rows_of(response: Any) -> list:
    return getattr(response, "data", None) or []


__all__ = ["execute", "rows_of"]
