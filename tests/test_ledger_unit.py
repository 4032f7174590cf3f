# User value: This test validates ledger reads/writes so usage is billed against the right caller.
import asyncio
import json
import unittest

import httpx

from services.errors import LedgerWriteFailure
from services.ledger import (
    INCREMENT_MUTATION,
    USAGE_QUERY,
    GraphQLUsageLedger,
    estimate_postcheck_tokens,
)

LEDGER_URL = "http://ledger.test/graphql"


def _ledger(handler):
    return GraphQLUsageLedger(graphql_url=LEDGER_URL, transport=httpx.MockTransport(handler))


class PostcheckEstimateUnitTests(unittest.TestCase):
    def test_word_count_estimate(self):
        self.assertEqual(estimate_postcheck_tokens("hello world"), 3)
        self.assertEqual(estimate_postcheck_tokens("one"), 2)
        self.assertEqual(estimate_postcheck_tokens("a b c"), 4)
        self.assertEqual(estimate_postcheck_tokens("  spaced   out\nwords "), 4)


class GraphQLUsageLedgerUnitTests(unittest.TestCase):
    def test_get_usage_count_sends_caller_token(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": {"getUsageCount": 1234}})

        usage = asyncio.run(_ledger(handler).get_usage_count("caller-token"))
        self.assertEqual(usage, 1234)
        self.assertEqual(seen["auth"], "Bearer caller-token")
        self.assertEqual(seen["body"], {"query": USAGE_QUERY})

    def test_get_usage_count_defaults_to_zero(self):
        for payload in ({}, {"data": None}, {"data": {"getUsageCount": None}}, {"errors": [{"message": "x"}]}):
            usage = asyncio.run(_ledger(lambda request, p=payload: httpx.Response(200, json=p)).get_usage_count("t"))
            self.assertEqual(usage, 0, payload)

    def test_increment_usage_sends_amount(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"data": {"incrementUsage": True}})

        asyncio.run(_ledger(handler).increment_usage("caller-token", 3))
        self.assertEqual(seen["body"]["query"], INCREMENT_MUTATION)
        self.assertEqual(seen["body"]["variables"], {"amount": 3})
        self.assertEqual(seen["auth"], "Bearer caller-token")

    def test_increment_usage_raises_on_http_error(self):
        ledger = _ledger(lambda request: httpx.Response(502, text="bad gateway"))
        with self.assertRaises(LedgerWriteFailure):
            asyncio.run(ledger.increment_usage("t", 3))

    def test_increment_usage_raises_on_graphql_errors(self):
        ledger = _ledger(lambda request: httpx.Response(200, json={"errors": [{"message": "nope"}]}))
        with self.assertRaises(LedgerWriteFailure):
            asyncio.run(ledger.increment_usage("t", 3))


if __name__ == "__main__":
    unittest.main()
