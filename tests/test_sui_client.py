"""
Tests for the JSON-RPC read client using httpx.MockTransport.
"""
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from yume.core.errors import PartialParseSkipped, RemoteReadFailure
from yume.infra.sui_client import SuiReadClient


def _client(handler, retries=1):
    http = httpx.AsyncClient(base_url="http://rpc.test", transport=httpx.MockTransport(handler))
    return SuiReadClient("http://rpc.test", retries=retries, client=http), http


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr("yume.infra.sui_client.asyncio.sleep", AsyncMock())


class TestReads:
    @pytest.mark.asyncio
    async def test_get_object(self):
        seen = []

        def handler(request):
            body = json.loads(request.content)
            seen.append(body)
            return httpx.Response(200, json={
                "jsonrpc": "2.0", "id": body["id"],
                "result": {"data": {"objectId": "0x1", "content": {"fields": {"a": "1"}}}},
            })

        client, http = _client(handler)
        data = await client.get_object("0x1")
        assert data["objectId"] == "0x1"
        assert seen[0]["method"] == "sui_getObject"
        assert seen[0]["params"][0] == "0x1"
        assert seen[0]["params"][1]["showContent"] is True
        await http.aclose()

    @pytest.mark.asyncio
    async def test_deleted_object_is_partial(self):
        def handler(request):
            return httpx.Response(200, json={
                "jsonrpc": "2.0", "id": 1,
                "result": {"error": {"code": "deleted", "object_id": "0x2"}},
            })

        client, http = _client(handler)
        with pytest.raises(PartialParseSkipped) as exc:
            await client.get_object("0x2")
        assert exc.value.record_id == "0x2"
        await http.aclose()

    @pytest.mark.asyncio
    async def test_dynamic_fields_page(self):
        def handler(request):
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {
                "data": [
                    {"objectId": "0xa", "name": {"type": "u64", "value": "3"}, "objectType": "Order"},
                    {"name": {"type": "u64", "value": "4"}},
                ],
                "nextCursor": "0xa",
                "hasNextPage": True,
            }})

        client, http = _client(handler)
        page = await client.get_dynamic_fields("0xparent", None, 50)
        assert [e.object_id for e in page.entries] == ["0xa"]
        assert page.entries[0].name_value == "3"
        assert page.next_cursor == "0xa"
        assert page.has_next_page
        await http.aclose()

    @pytest.mark.asyncio
    async def test_owned_objects_filter(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {
                "data": [{"data": {"objectId": "0x1"}}], "nextCursor": None, "hasNextPage": False,
            }})

        client, http = _client(handler)
        page = await client.get_owned_objects("0xowner", "0xpkg::position::LoanPosition")
        assert seen[0]["params"][1]["filter"] == {"StructType": "0xpkg::position::LoanPosition"}
        assert len(page.objects) == 1
        assert not page.has_next_page
        await http.aclose()


class TestTransport:
    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            if len(attempts) == 1:
                return httpx.Response(503)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {"data": {"objectId": "0x1"}}})

        client, http = _client(handler, retries=2)
        assert (await client.get_object("0x1"))["objectId"] == "0x1"
        assert len(attempts) == 2
        await http.aclose()

    @pytest.mark.asyncio
    async def test_exhausted_retries(self):
        client, http = _client(lambda request: httpx.Response(502), retries=1)
        with pytest.raises(RemoteReadFailure):
            await client.get_object("0x1")
        await http.aclose()

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            return httpx.Response(400)

        client, http = _client(handler, retries=3)
        with pytest.raises(RemoteReadFailure):
            await client.get_object("0x1")
        assert len(attempts) == 1
        await http.aclose()

    @pytest.mark.asyncio
    async def test_rpc_error(self):
        client, http = _client(lambda request: httpx.Response(
            200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "Invalid params"}}
        ))
        with pytest.raises(RemoteReadFailure, match="Invalid params"):
            await client.get_object("0x1")
        await http.aclose()

    @pytest.mark.asyncio
    async def test_connect_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client, http = _client(handler, retries=1)
        with pytest.raises(RemoteReadFailure, match="ConnectError"):
            await client.get_object("0x1")
        await http.aclose()

    @pytest.mark.asyncio
    async def test_shared_client_not_closed(self):
        client, http = _client(lambda request: httpx.Response(200, json={}))
        await client.close()
        assert not http.is_closed
        await http.aclose()
