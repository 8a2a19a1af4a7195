"""
Minimal async JSON-RPC client for the Sui fullnode read API.

Only the read surface the readers need:
    get_object(id)                              sui_getObject
    get_dynamic_fields(parent, cursor, limit)   suix_getDynamicFields
    get_owned_objects(owner, type, cursor, n)   suix_getOwnedObjects

Transport failures are retried with jittered exponential backoff and then
surface as RemoteReadFailure. Per-object error payloads (deleted, not found)
surface as PartialParseSkipped so bulk traversals can drop just that record.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from yume.core.errors import PartialParseSkipped, RemoteReadFailure
from yume.infra.logging_cfg import log_event

log = logging.getLogger("yume")

OBJECT_OPTIONS: Dict[str, bool] = {
    "showContent": True,
    "showType": True,
    "showOwner": True,
}

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


@dataclass(frozen=True)
class DynamicFieldEntry:
    object_id: str
    name_type: str = ""
    name_value: Any = None
    object_type: str = ""


@dataclass(frozen=True)
class DynamicFieldPage:
    entries: List[DynamicFieldEntry] = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_next_page: bool = False


@dataclass(frozen=True)
class OwnedObjectPage:
    # Raw per-object responses: {"data": {...}} or {"error": {...}}
    objects: List[Dict[str, Any]] = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_next_page: bool = False


def unwrap_object_response(resp: Any) -> Dict[str, Any]:
    """Return the object data of a SuiObjectResponse or raise PartialParseSkipped."""
    if not isinstance(resp, dict):
        raise PartialParseSkipped("object response is not a mapping")
    err = resp.get("error")
    if err:
        object_id = err.get("object_id") if isinstance(err, dict) else None
        code = err.get("code", "error") if isinstance(err, dict) else str(err)
        raise PartialParseSkipped(f"object error: {code}", object_id)
    data = resp.get("data")
    if not isinstance(data, dict):
        raise PartialParseSkipped("object response has no data")
    return data


class SuiReadClient:
    def __init__(
        self,
        rpc_url: str,
        timeout: float = 10.0,
        retries: int = 2,
        http2: bool = True,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.rpc_url = rpc_url.rstrip("/")
        self._retries = retries
        self._ids = itertools.count(1)
        # A shared client passed in is not closed by close()
        if client is not None:
            self.client = client
            self._owns_client = False
        else:
            self.client = httpx.AsyncClient(base_url=self.rpc_url, http2=http2, timeout=timeout)
            self._owns_client = True

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "SuiReadClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # ===== Read surface =====

    async def get_object(self, object_id: str) -> Dict[str, Any]:
        resp = await self._rpc("sui_getObject", [object_id, OBJECT_OPTIONS])
        return unwrap_object_response(resp)

    async def get_dynamic_fields(
        self, parent_id: str, cursor: Optional[str] = None, limit: int = 50
    ) -> DynamicFieldPage:
        result = await self._rpc("suix_getDynamicFields", [parent_id, cursor, limit])
        if not isinstance(result, dict):
            raise RemoteReadFailure("suix_getDynamicFields returned a non-object result")
        entries: List[DynamicFieldEntry] = []
        for raw in result.get("data") or []:
            if not isinstance(raw, dict) or not raw.get("objectId"):
                continue
            name = raw.get("name") if isinstance(raw.get("name"), dict) else {}
            entries.append(DynamicFieldEntry(
                object_id=raw["objectId"],
                name_type=str(name.get("type", "")),
                name_value=name.get("value"),
                object_type=str(raw.get("objectType", "")),
            ))
        return DynamicFieldPage(
            entries=entries,
            next_cursor=result.get("nextCursor"),
            has_next_page=bool(result.get("hasNextPage")),
        )

    async def get_owned_objects(
        self,
        owner: str,
        struct_type: Optional[str] = None,
        cursor: Optional[str] = None,
        limit: int = 50,
    ) -> OwnedObjectPage:
        query: Dict[str, Any] = {"options": OBJECT_OPTIONS}
        if struct_type:
            query["filter"] = {"StructType": struct_type}
        result = await self._rpc("suix_getOwnedObjects", [owner, query, cursor, limit])
        if not isinstance(result, dict):
            raise RemoteReadFailure("suix_getOwnedObjects returned a non-object result")
        return OwnedObjectPage(
            objects=[o for o in (result.get("data") or []) if isinstance(o, dict)],
            next_cursor=result.get("nextCursor"),
            has_next_page=bool(result.get("hasNextPage")),
        )

    # ===== Transport =====

    async def _rpc(self, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        backoff = 0.2
        for attempt in range(self._retries + 1):
            try:
                resp = await self.client.post("", json=payload)
                resp.raise_for_status()
                body = resp.json()
                break
            except httpx.HTTPStatusError as exc:
                if exc.response.status_code not in _RETRYABLE_STATUS or attempt >= self._retries:
                    raise RemoteReadFailure(f"{method}: HTTP {exc.response.status_code}") from exc
                err = f"HTTP {exc.response.status_code}"
            except httpx.HTTPError as exc:
                if attempt >= self._retries:
                    raise RemoteReadFailure(f"{method}: {exc.__class__.__name__}: {exc}") from exc
                err = f"{exc.__class__.__name__}: {exc}"
            except ValueError as exc:
                raise RemoteReadFailure(f"{method}: undecodable response") from exc
            log_event(log, "rpc_retry", logging.WARNING, method=method, attempt=attempt + 1, error=err)
            await asyncio.sleep(backoff + random.uniform(0, backoff * 0.5))
            backoff *= 2

        if not isinstance(body, dict):
            raise RemoteReadFailure(f"{method}: response is not a JSON-RPC object")
        if body.get("error"):
            error = body["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise RemoteReadFailure(f"{method}: {message}")
        if "result" not in body:
            raise RemoteReadFailure(f"{method}: response has no result")
        return body["result"]
