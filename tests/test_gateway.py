from __future__ import annotations

import json
import time
import unittest

from honeywall.config import Settings
from honeywall.errors import StorageError
from honeywall.gateway import IngestionGateway
from honeywall.ratelimit import RateLimiter
from honeywall.validator import MISSING_MESSAGE
from tests.helpers import make_event

API_KEY = "secret-api-key-12345"

EXAMPLE = {
    "source_ip": "10.0.0.5",
    "honeypot_name": "SSH-01",
    "honeypot_type": "SSH Server",
    "attack_type": "SSH Brute Force",
}

SENSOR_EXAMPLE = {
    "source_ip": "10.0.0.5",
    "sensor_name": "SSH-01",
    "sensor_type": "SSH Server",
    "attack_type": "SSH Brute Force",
}


class FakeStore:
    """Records insert calls instead of touching SQLite."""

    def __init__(self, fail: Exception | None = None) -> None:
        self.calls: list[list[dict]] = []
        self.fail = fail
        self._next_id = 1

    async def insert_events(self, records: list[dict]):
        self.calls.append(records)
        if self.fail is not None:
            raise self.fail
        out = []
        for record in records:
            out.append(make_event(record["timestamp"], **{**record, "id": self._next_id}))
            self._next_id += 1
        return out


def body(obj) -> bytes:
    return json.dumps(obj).encode("utf-8")


class TestIngestionGateway(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.settings = Settings(api_key=API_KEY)
        self.store = FakeStore()
        self.gateway = IngestionGateway(self.settings, RateLimiter(100, 60), self.store)

    async def post(self, payload, key: str | None = API_KEY, content_length: int | None = None):
        return await self.gateway.handle("POST", key, payload, content_length)

    async def test_single_record_stored(self) -> None:
        status, resp = await self.post(body(EXAMPLE))
        self.assertEqual(status, 200)
        self.assertTrue(resp["success"])
        self.assertEqual(resp["ids"], [1])
        self.assertEqual(len(self.store.calls), 1)

    async def test_batch_ids_in_submission_order(self) -> None:
        batch = [dict(EXAMPLE, source_ip=f"10.0.0.{i}") for i in range(1, 4)]
        status, resp = await self.post(body(batch))
        self.assertEqual(status, 200)
        self.assertEqual(resp["ids"], [1, 2, 3])
        self.assertEqual(resp["message"], "Stored 3 log entry(ies)")
        self.assertEqual([r["source_ip"] for r in self.store.calls[0]],
                         ["10.0.0.1", "10.0.0.2", "10.0.0.3"])

    async def test_missing_or_wrong_credential(self) -> None:
        for key in (None, "", "wrong-key", API_KEY + " "):
            status, resp = await self.post(body(EXAMPLE), key=key)
            self.assertEqual(status, 401)
            self.assertEqual(resp, {"error": "Unauthorized"})
        self.assertEqual(self.store.calls, [])

    async def test_unset_secret_rejects_everything(self) -> None:
        gateway = IngestionGateway(Settings(api_key=None), RateLimiter(), self.store)
        status, _ = await gateway.handle("POST", "anything", body(EXAMPLE))
        self.assertEqual(status, 401)

    async def test_101st_request_rate_limited(self) -> None:
        for _ in range(100):
            status, _ = await self.post(body(EXAMPLE))
            self.assertEqual(status, 200)
        status, resp = await self.post(body(EXAMPLE))
        self.assertEqual(status, 429)
        self.assertIn("error", resp)
        self.assertEqual(len(self.store.calls), 100)

    async def test_unauthorized_calls_do_not_consume_quota(self) -> None:
        for _ in range(150):
            await self.post(body(EXAMPLE), key="wrong")
        status, _ = await self.post(body(EXAMPLE))
        self.assertEqual(status, 200)

    async def test_method_not_allowed(self) -> None:
        status, resp = await self.gateway.handle("GET", API_KEY, b"")
        self.assertEqual(status, 405)
        self.assertEqual(resp, {"error": "Method not allowed"})

    async def test_preflight(self) -> None:
        status, resp = await self.gateway.handle("OPTIONS", None, b"")
        self.assertEqual(status, 200)
        self.assertIsNone(resp)

    async def test_declared_oversize_rejected_before_parsing(self) -> None:
        status, resp = await self.post(b"not even json", content_length=20 * 1024)
        self.assertEqual(status, 413)
        self.assertEqual(resp, {"error": "Request payload too large"})
        self.assertEqual(self.store.calls, [])

    async def test_measured_oversize_rejected(self) -> None:
        status, _ = await self.post(b"x" * (10 * 1024 + 1))
        self.assertEqual(status, 413)
        self.assertEqual(self.store.calls, [])

    async def test_oversized_batch(self) -> None:
        batch = [{"source_ip": "1.1.1.1"} for _ in range(101)]
        payload = body(batch)
        self.assertLess(len(payload), 10 * 1024)
        status, resp = await self.post(payload)
        self.assertEqual(status, 400)
        self.assertIn("100", resp["error"])
        self.assertEqual(self.store.calls, [])

    async def test_one_invalid_record_aborts_batch(self) -> None:
        batch = [dict(EXAMPLE) for _ in range(5)]
        batch.insert(2, dict(EXAMPLE, source_ip="10.0.0.256"))
        status, resp = await self.post(body(batch))
        self.assertEqual(status, 400)
        self.assertEqual(resp, {"error": "Invalid source_ip format"})
        self.assertEqual(self.store.calls, [])

    async def test_validation_messages(self) -> None:
        cases = [
            ({"source_ip": "10.0.0.5"}, MISSING_MESSAGE),
            (dict(EXAMPLE, source_port=70000), "Invalid source_port range (0-65535)"),
        ]
        for record, message in cases:
            status, resp = await self.post(body(record))
            self.assertEqual(status, 400)
            self.assertEqual(resp["error"], message)

    async def test_sensor_field_example(self) -> None:
        status, resp = await self.post(body(SENSOR_EXAMPLE))
        self.assertEqual(status, 200)
        self.assertEqual(resp["ids"], [1])
        stored = self.store.calls[0][0]
        self.assertEqual((stored["honeypot_name"], stored["honeypot_type"]), ("SSH-01", "SSH Server"))

        status, _ = await self.post(body(SENSOR_EXAMPLE), key=None)
        self.assertEqual(status, 401)

        for _ in range(99):
            status, _ = await self.post(body(SENSOR_EXAMPLE))
            self.assertEqual(status, 200)
        status, _ = await self.post(body(SENSOR_EXAMPLE))
        self.assertEqual(status, 429)

    async def test_non_standard_json_constants_rejected(self) -> None:
        for literal in (b"Infinity", b"-Infinity", b"NaN"):
            raw = b'{"source_ip":"1.2.3.4","honeypot_name":"SSH-01","honeypot_type":"SSH Server","timestamp":' + literal + b"}"
            status, resp = await self.post(raw)
            self.assertEqual(status, 400)
            self.assertEqual(resp, {"error": "Request body must be valid JSON"})
        self.assertEqual(self.store.calls, [])

    async def test_out_of_range_timestamps_get_server_time(self) -> None:
        for literal in (b"1" + b"0" * 400, b"1e999"):
            raw = b'{"source_ip":"1.2.3.4","honeypot_name":"SSH-01","honeypot_type":"SSH Server","timestamp":' + literal + b"}"
            before = time.time()
            status, _ = await self.post(raw)
            self.assertEqual(status, 200)
            self.assertGreaterEqual(self.store.calls[-1][0]["timestamp"], before)
            self.assertLessEqual(self.store.calls[-1][0]["timestamp"], time.time())

    async def test_malformed_json(self) -> None:
        for raw in (b"{not json", b"", b"\xff\xfe"):
            status, resp = await self.post(raw)
            self.assertEqual(status, 400)
            self.assertEqual(resp, {"error": "Request body must be valid JSON"})

    async def test_storage_failure_is_generic(self) -> None:
        gateway = IngestionGateway(self.settings, RateLimiter(), FakeStore(fail=StorageError()))
        status, resp = await gateway.handle("POST", API_KEY, body(EXAMPLE))
        self.assertEqual(status, 500)
        self.assertEqual(resp, {"error": "Failed to store log entries"})

    async def test_unexpected_failure_does_not_leak(self) -> None:
        store = FakeStore(fail=RuntimeError("disk /var/lib/secret exploded"))
        gateway = IngestionGateway(self.settings, RateLimiter(), store)
        with self.assertLogs("honeywall.gateway", level="ERROR"):
            status, resp = await gateway.handle("POST", API_KEY, body(EXAMPLE))
        self.assertEqual(status, 500)
        self.assertEqual(resp, {"error": "Failed to process request"})

    async def test_oversized_metadata_stored_with_marker(self) -> None:
        record = dict(EXAMPLE, metadata={"blob": "x" * 2990})
        status, _ = await self.post(body(record))
        self.assertEqual(status, 200)
        self.assertEqual(self.store.calls[0][0]["metadata"],
                         {"error": "metadata_truncated", "original_size": 3000})


if __name__ == "__main__":
    unittest.main()
