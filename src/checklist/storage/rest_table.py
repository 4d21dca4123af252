# src/checklist/storage/rest_table.py

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

import httpx

from ..core.ports import Filters, OrderBy, Row
from ..errors import PersistenceError

logger = logging.getLogger(__name__)


def _literal(value: Any) -> str:
    """Render a filter value in PostgREST query syntax."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


class RestTaskTable:
    """
    Hosted "tasks" table reached over the PostgREST API (as served by Supabase).

    Query mapping:
    - filters  -> ?col=eq.<value>
    - order_by -> ?order=col.asc,col2.desc
    - update   -> PATCH ?id=eq.<id> with return=representation, so a miss is detectable
    - batch    -> PATCH ?id=in.(a,b,c)

    Any transport error or non-2xx response becomes PersistenceError.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        table: str = "tasks",
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url or not base_url.strip():
            raise ValueError("REST base URL is not set. Set CHECKLIST_REST_URL in your .env.")
        if not api_key or not api_key.strip():
            raise ValueError("REST API key is not set. Set CHECKLIST_REST_KEY in your .env.")

        self._path = f"/rest/v1/{table}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            },
            timeout=httpx.Timeout(timeout),
        )
        logger.info("RestTaskTable ready url=%s table=%s", base_url, table)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        params: Mapping[str, str] | None = None,
        body: Any = None,
        *,
        prefer: str | None = None,
    ) -> Any:
        headers = {"Content-Type": "application/json"}
        if prefer:
            headers["Prefer"] = prefer

        content = None if body is None else json.dumps(body, ensure_ascii=False)
        try:
            response = await self._client.request(
                method,
                self._path,
                params=params,
                content=content,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            raise PersistenceError(f"{method} {self._path}: {exc.__class__.__name__}: {exc}") from exc

        if response.is_error:
            raise PersistenceError(
                f"{method} {self._path}: HTTP {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise PersistenceError(f"{method} {self._path}: invalid JSON response") from exc

    # ---- TaskTable ----

    async def select(self, filters: Filters | None = None, order_by: OrderBy = ()) -> list[Row]:
        params: dict[str, str] = {"select": "*"}
        for name, value in (filters or {}).items():
            params[name] = f"eq.{_literal(value)}"
        if order_by:
            params["order"] = ",".join(f"{name}.{'asc' if asc else 'desc'}" for name, asc in order_by)

        data = await self._request("GET", params)
        return list(data or [])

    async def insert(self, rows: Sequence[Mapping[str, Any]]) -> list[Row]:
        data = await self._request(
            "POST",
            {"select": "*"},
            [dict(r) for r in rows],
            prefer="return=representation",
        )
        return list(data or [])

    async def update(self, task_id: Any, fields: Mapping[str, Any]) -> None:
        data = await self._request(
            "PATCH",
            {"id": f"eq.{_literal(task_id)}"},
            dict(fields),
            prefer="return=representation",
        )
        if not data:
            raise PersistenceError(f"no task row matched id {task_id}")

    async def update_many(self, task_ids: Sequence[Any], fields: Mapping[str, Any]) -> None:
        if not task_ids:
            return
        ids = ",".join(_literal(i) for i in task_ids)
        await self._request(
            "PATCH",
            {"id": f"in.({ids})"},
            dict(fields),
            prefer="return=minimal",
        )

    async def delete(self, task_id: Any) -> None:
        await self._request("DELETE", {"id": f"eq.{_literal(task_id)}"}, prefer="return=minimal")
