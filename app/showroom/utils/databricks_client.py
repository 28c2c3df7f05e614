"""
Warehouse access for the portal store.

One lazily created WorkspaceClient per process, and ``execute_sql`` to run
parameterised statements on the SQL warehouse.  Results can be kept for
``CACHE_TTL`` seconds under a caller-chosen key so repeated promotion lookups
within a request burst do not hit the warehouse again.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from databricks.sdk import WorkspaceClient
from databricks.sdk.config import Config
from databricks.sdk.service.sql import StatementParameterListItem, StatementState

from showroom.utils.config import (
    CACHE_TTL,
    CATALOG_NAME,
    DATABRICKS_HOST,
    DATABRICKS_TOKEN,
    SCHEMA_GOLD,
    WAREHOUSE_ID,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Query result cache
# ---------------------------------------------------------------------------
# key -> (stored_at, rows); entries expire after CACHE_TTL seconds
_cache: dict[str, tuple[float, list[dict[str, Any]]]] = {}


def _cached_rows(key: str) -> list[dict[str, Any]] | None:
    entry = _cache.get(key)
    if entry is None:
        return None
    stored_at, rows = entry
    if time.monotonic() - stored_at >= CACHE_TTL:
        del _cache[key]
        return None
    return rows


def invalidate_cache(prefix: str | None = None) -> int:
    """Drop cached query results, all of them or those under *prefix*.

    Returns the number of entries removed.  Keys are namespaced by kind
    (``promotions:<vendor>``), so ``invalidate_cache("promotions:")`` forces
    the next lookup of every vendor's promotions back to the warehouse.
    """
    keys = [k for k in _cache if prefix is None or k.startswith(prefix)]
    for key in keys:
        del _cache[key]
    return len(keys)


# ---------------------------------------------------------------------------
# Singleton client
# ---------------------------------------------------------------------------
_client: WorkspaceClient | None = None


def get_workspace_client() -> WorkspaceClient:
    """Return the process-wide WorkspaceClient, creating it on first use.

    Inside a Databricks App the SDK picks up the app's service principal.
    Setting DATABRICKS_TOKEN (and DATABRICKS_HOST) switches to token auth for
    local runs.
    """
    global _client
    if _client is None:
        if DATABRICKS_TOKEN:
            logger.info("Connecting to %s with a personal access token", DATABRICKS_HOST)
            config = Config(
                host=DATABRICKS_HOST, token=DATABRICKS_TOKEN, http_timeout_seconds=120
            )
        else:
            logger.info("Connecting with Databricks SDK default authentication")
            config = Config(http_timeout_seconds=120)
        _client = WorkspaceClient(config=config)
    return _client


# ---------------------------------------------------------------------------
# SQL helper
# ---------------------------------------------------------------------------
def execute_sql(
    query: str,
    *,
    parameters: dict[str, Any] | None = None,
    cache_key: str | None = None,
) -> list[dict[str, Any]]:
    """Execute a SQL statement via the Databricks SQL Statement Execution API.

    Parameters
    ----------
    query:
        The SQL query string.  Values supplied by callers must be referenced
        as named markers (``:vendor``) and passed in *parameters*.
    parameters:
        Named parameter values; each is sent as a string.
    cache_key:
        If provided the result is cached under this key for ``CACHE_TTL``
        seconds.  Subsequent calls with the same key skip execution.

    Returns
    -------
    list[dict]
        Each dict maps column name -> value for one row.
    """
    if cache_key:
        cached = _cached_rows(cache_key)
        if cached is not None:
            logger.debug("Cache hit for %s", cache_key)
            return cached

    statement_params = [
        StatementParameterListItem(name=name, value=None if value is None else str(value))
        for name, value in (parameters or {}).items()
    ]

    w = get_workspace_client()
    response = w.statement_execution.execute_statement(
        warehouse_id=WAREHOUSE_ID,
        statement=query,
        wait_timeout="30s",
        catalog=CATALOG_NAME,
        schema=SCHEMA_GOLD,
        parameters=statement_params or None,
    )

    if response.status.state != StatementState.SUCCEEDED:
        error_msg = getattr(response.status, "error", None)
        raise RuntimeError(
            f"SQL execution failed ({response.status.state}): {error_msg}"
        )

    columns = [col.name for col in response.manifest.schema.columns]
    rows: list[dict[str, Any]] = []
    if response.result and response.result.data_array:
        for row in response.result.data_array:
            rows.append(dict(zip(columns, row)))

    if cache_key:
        _cache[cache_key] = (time.monotonic(), rows)
    return rows
