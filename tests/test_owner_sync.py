"""
Tests for the owner sync job.

Covers:
- Cursor pagination ends on a short or empty page
- Only changed owners are written
- Failed pages skip ahead one page
- Missing owner field aborts the job
- Missing API key / collection skip the run
"""
from unittest.mock import AsyncMock

import httpx
import pytest

from codex_api.adapters.base import StoreBundle
from codex_api.adapters.the_graph import TheGraphClient
from codex_api.core.exceptions import GraphQLError, UpstreamError
from codex_api.jobs.owner_sync import run_owner_sync_job
from codex_api.schemas.upstream import GraphToken


def token(token_id, owner):
    return GraphToken(id=f"0xabc-{token_id}", tokenId=str(token_id), owner=owner)


def graph_with_pages(*pages):
    client = AsyncMock()
    client.fetch_tokens.side_effect = list(pages)
    return client


class TestOwnerSyncJob:
    """run_owner_sync_job reconciles owners page by page."""

    @pytest.mark.asyncio
    async def test_updates_changed_owners(self, stores, test_settings, item_store, no_sleep):
        for i in range(1, 5):
            item_store.records[i] = {"id": i, "owner": "0xold"}
        graph = graph_with_pages(
            ([token(1, "0xnew"), token(2, "0xold"), token(3, "0xnew")], 3),
            ([token(4, "0xnew")], 4),
        )

        result = await run_owner_sync_job(stores, test_settings, graph_client=graph)

        assert result["status"] == "completed"
        assert result["stats"]["updated"] == 3
        assert result["stats"]["unchanged"] == 1
        assert result["stats"]["pages"] == 2
        assert [u[0] for u in item_store.updates] == [1, 3, 4]
        assert graph.fetch_tokens.await_args_list[1].args == (3,)
        assert graph.fetch_tokens.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_page_ends(self, stores, test_settings, no_sleep):
        graph = graph_with_pages(([], 0))

        result = await run_owner_sync_job(stores, test_settings, graph_client=graph)

        assert result["status"] == "completed"
        assert result["stats"]["fetched"] == 0
        assert graph.fetch_tokens.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_items_counted(self, stores, test_settings, no_sleep):
        graph = graph_with_pages(([token(9, "0xnew")], 9))

        result = await run_owner_sync_job(stores, test_settings, graph_client=graph)

        assert result["stats"]["not_found"] == 1
        assert result["stats"]["updated"] == 0

    @pytest.mark.asyncio
    async def test_page_error_skips_ahead(self, stores, test_settings, item_store, no_sleep):
        item_store.records[5] = {"id": 5, "owner": None}
        graph = graph_with_pages(
            UpstreamError("HTTP error! status: 502", source="the_graph", status_code=502),
            ([token(5, "0xnew")], 5),
        )

        result = await run_owner_sync_job(stores, test_settings, graph_client=graph)

        assert result["stats"]["page_errors"] == 1
        assert result["stats"]["updated"] == 1
        assert graph.fetch_tokens.await_args_list[1].args == (test_settings.OWNER_SYNC_PAGE_SIZE,)
        no_sleep.assert_any_await(test_settings.OWNER_SYNC_ERROR_DELAY_SECONDS)

    @pytest.mark.asyncio
    async def test_repeated_errors_stop_at_universe_size(self, stores, test_settings, no_sleep):
        graph = AsyncMock()
        graph.fetch_tokens.side_effect = GraphQLError([{"message": "indexing error"}])

        result = await run_owner_sync_job(stores, test_settings, graph_client=graph)

        # page size 3, universe 10: cursors 0, 3, 6, 9
        assert graph.fetch_tokens.await_count == 4
        assert result["stats"]["page_errors"] == 4

    @pytest.mark.asyncio
    async def test_cursor_not_advancing_stops(self, stores, test_settings, no_sleep):
        page = [token(1, "a"), token(2, "b"), token(3, "c")]
        graph = graph_with_pages((page, 0), (page, 0))

        await run_owner_sync_job(stores, test_settings, graph_client=graph)

        assert graph.fetch_tokens.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_field_aborts(self, test_settings, make_items, file_store, folder_store, no_sleep):
        items = make_items(records=[{"id": 1, "owner": None}, {"id": 2, "owner": None}], missing_fields={"owner"})
        stores = StoreBundle(items=items, files=file_store, folders=folder_store)
        graph = graph_with_pages(([token(1, "0xa"), token(2, "0xb")], 2))

        result = await run_owner_sync_job(stores, test_settings, graph_client=graph)

        assert result["status"] == "aborted"
        assert result["reason"] == "field_missing"
        assert items.updates == []

    @pytest.mark.asyncio
    async def test_missing_api_key(self, stores, test_settings):
        settings = test_settings.model_copy(update={"THE_GRAPH_API_KEY": ""})
        graph = AsyncMock()

        result = await run_owner_sync_job(stores, settings, graph_client=graph)

        assert result["status"] == "skipped"
        assert result["reason"] == "missing_api_key"
        graph.fetch_tokens.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_collection_missing(self, stores, test_settings, item_store):
        item_store.exists = False
        graph = AsyncMock()

        result = await run_owner_sync_job(stores, test_settings, graph_client=graph)

        assert result["reason"] == "collection_missing"
        graph.fetch_tokens.assert_not_awaited()


class TestTheGraphClient:
    """fetch_tokens posts the tokens query and decodes the page."""

    @pytest.mark.asyncio
    async def test_fetch_tokens(self):
        captured = {}

        def handler(request):
            captured["url"] = str(request.url)
            captured["body"] = request.read()
            return httpx.Response(200, json={"data": {"tokens": [
                {"id": "0x1", "tokenId": "11", "owner": "0xa"},
                {"id": "0x2", "tokenId": "12", "owner": "0xb"},
            ]}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            graph = TheGraphClient("KEY", "SUBGRAPH", gateway="https://graph.test/api", client=http)
            tokens, cursor = await graph.fetch_tokens(10, first=2)

        assert captured["url"] == "https://graph.test/api/KEY/subgraphs/id/SUBGRAPH"
        assert b'"lastTokenId": 10' in captured["body"] or b'"lastTokenId":10' in captured["body"]
        assert [t.tokenId for t in tokens] == ["11", "12"]
        assert cursor == 12

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self):
        def handler(request):
            return httpx.Response(200, json={"errors": [{"message": "bad"}]})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            graph = TheGraphClient("KEY", "SUBGRAPH", client=http)
            with pytest.raises(GraphQLError):
                await graph.fetch_tokens(0)

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        def handler(request):
            return httpx.Response(500)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            graph = TheGraphClient("KEY", "SUBGRAPH", client=http)
            with pytest.raises(UpstreamError) as exc_info:
                await graph.fetch_tokens(0)

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_non_object_body_raises(self):
        def handler(request):
            return httpx.Response(200, json=[{"tokenId": "1"}])

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            graph = TheGraphClient("KEY", "SUBGRAPH", client=http)
            with pytest.raises(UpstreamError):
                await graph.fetch_tokens(0)
