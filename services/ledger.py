"""Usage ledger client (GraphQL over HTTP).

Both calls are authenticated with the caller's own bearer token; the ledger
backend is responsible for serializing increments per caller.
"""
import logging
import math

import httpx

from services.errors import LedgerWriteFailure

logger = logging.getLogger("api.ledger")

USAGE_QUERY = "query { getUsageCount }"
INCREMENT_MUTATION = """
mutation IncrementUsage($amount: Int!) {
  incrementUsage(amount: $amount)
}
"""

WORDS_PER_TOKEN = 0.75


def estimate_postcheck_tokens(transcript: str) -> int:
    """Billing estimate from the transcript's word count."""
    return math.ceil(len(transcript.split()) / WORDS_PER_TOKEN)


class GraphQLUsageLedger:
    def __init__(
        self,
        *,
        graphql_url: str,
        timeout_sec: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.graphql_url = graphql_url
        self.timeout_sec = timeout_sec
        self.transport = transport

    async def _post(self, token: str, body: dict) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self.transport) as client:
            return await client.post(
                self.graphql_url,
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )

    async def get_usage_count(self, token: str) -> int:
        response = await self._post(token, {"query": USAGE_QUERY})
        payload = response.json()

        if isinstance(payload, dict) and payload.get("errors"):
            logger.warning(
                "ledger_usage_query_errors status=%s errors=%s",
                response.status_code,
                payload.get("errors"),
            )

        data = payload.get("data") if isinstance(payload, dict) else None
        value = data.get("getUsageCount") if isinstance(data, dict) else None
        if value is None:
            return 0
        return int(value)

    async def increment_usage(self, token: str, amount: int) -> None:
        response = await self._post(
            token,
            {"query": INCREMENT_MUTATION, "variables": {"amount": int(amount)}},
        )
        if response.status_code >= 400:
            raise LedgerWriteFailure(f"Ledger returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise LedgerWriteFailure("Ledger returned a non-JSON body") from exc

        if isinstance(payload, dict) and payload.get("errors"):
            raise LedgerWriteFailure(f"Ledger rejected increment: {payload.get('errors')}")

        logger.info("ledger_usage_incremented amount=%s", amount)
