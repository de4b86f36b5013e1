"""
The Graph Adapter

Reads token ownership from the codex subgraph. The API key is embedded in
the endpoint path:

    <gateway>/<api_key>/subgraphs/id/<subgraph_id>

Pagination is cursor-based on the integer tokenId (tokenId_gt), ordered
ascending, revealed tokens only.
"""
import logging
from typing import List, Optional, Tuple

import httpx
from pydantic import ValidationError

from codex_api.core.exceptions import GraphQLError, UpstreamError
from codex_api.schemas.upstream import GraphToken

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY = "https://gateway.thegraph.com/api"

TOKENS_QUERY = """
    query Tokens($lastTokenId: Int, $first: Int) {
      tokens(
        where: { revealed: true, tokenId_gt: $lastTokenId },
        orderBy: tokenId,
        orderDirection: asc,
        first: $first
      ) {
        id
        tokenId
        owner
      }
    }
"""


def get_the_graph_api_url(api_key: str, subgraph_id: str, gateway: str = DEFAULT_GATEWAY) -> str:
    """Gets The Graph API URL with the API key in the path."""
    return f"{gateway.rstrip('/')}/{api_key}/subgraphs/id/{subgraph_id}"


class TheGraphClient:
    """
    Minimal GraphQL client for the ownership subgraph.

    Usage:
        async with TheGraphClient(api_key, subgraph_id) as graph:
            tokens, cursor = await graph.fetch_tokens(0)
    """

    def __init__(
        self,
        api_key: str,
        subgraph_id: str,
        gateway: str = DEFAULT_GATEWAY,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = get_the_graph_api_url(api_key, subgraph_id, gateway)
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_tokens(self, last_token_id: int = 0, first: int = 1000) -> Tuple[List[GraphToken], int]:
        """
        Fetch one page of tokens with tokenId > last_token_id.

        Returns:
            (tokens, cursor) where cursor is the last token's integer tokenId,
            or `last_token_id` when the page is empty.

        Raises:
            UpstreamError: transport failure, non-2xx status, or undecodable body
            GraphQLError: the response carried GraphQL errors
        """
        try:
            response = await self._client.post(
                self.url,
                json={
                    "query": TOKENS_QUERY,
                    "variables": {"lastTokenId": last_token_id, "first": first},
                },
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"The Graph request failed: {e}", source="the_graph") from e

        if not response.is_success:
            raise UpstreamError(
                f"HTTP error! status: {response.status_code}",
                source="the_graph",
                status_code=response.status_code,
            )

        try:
            result = response.json()
        except ValueError as e:
            raise UpstreamError("The Graph returned a non-JSON body", source="the_graph") from e
        if not isinstance(result, dict):
            raise UpstreamError(
                f"The Graph returned a {type(result).__name__} instead of an object",
                source="the_graph",
            )

        if result.get("errors"):
            raise GraphQLError(result["errors"])

        raw_tokens = (result.get("data") or {}).get("tokens") or []
        try:
            tokens = [GraphToken.model_validate(t) for t in raw_tokens]
        except ValidationError as e:
            raise UpstreamError(f"Unexpected token shape from The Graph: {e}", source="the_graph") from e

        cursor = last_token_id
        if tokens:
            try:
                cursor = int(tokens[-1].tokenId)
            except ValueError:
                logger.warning(f"[the_graph] Non-numeric last tokenId {tokens[-1].tokenId!r}, cursor unchanged")

        return tokens, cursor
