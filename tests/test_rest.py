import logging
import math
import threading

import pytest

from dcconnect.rest import (
    API_PREFIX,
    INVALID_BUCKET,
    MAX_RETRIES,
    HttpClient,
    RateLimiter,
    Response,
    parse_reset_after,
    reduce_url,
)


class FakeTransport:
    def __init__(self, replies=None, fail_sends=0):
        self.sent = []
        self.replies = list(replies or [])
        self.connects = 0
        self.closes = 0
        self.fail_sends = fail_sends

    def connect(self):
        self.connects += 1

    def close(self):
        self.closes += 1

    def send(self, request):
        self.sent.append(request)
        if self.fail_sends > 0:
            self.fail_sends -= 1
            raise OSError("connection reset")
        if self.replies:
            return self.replies.pop(0)
        return (200, "OK", {}, "{}")


def test_reduce_url_drops_id_segments():
    assert reduce_url("/channels/123/messages") == "/channels/messages"


def test_reduce_url_same_route_for_different_ids():
    assert reduce_url("/guilds/1/members/2") == reduce_url("/guilds/99/members/100")
    assert reduce_url("/guilds/1/roles") != reduce_url("/guilds/1/members")


def test_reduce_url_without_slash_is_empty():
    assert reduce_url("nothing") == ""


def test_parse_reset_after_seconds_and_millis():
    assert parse_reset_after("1.250") == 1250
    assert parse_reset_after("3") == parse_reset_after("3.0")


def test_parse_reset_after_fraction_counts_as_millis():
    assert parse_reset_after("1.5") == 1005


def test_parse_reset_after_garbage_is_zero():
    assert parse_reset_after("soon") == 0


def test_rate_limiter_unknown_bucket():
    limiter = RateLimiter()
    assert limiter.bucket_for("/channels/1/messages") == INVALID_BUCKET


def test_rate_limiter_register_matches_other_ids():
    limiter = RateLimiter()
    limiter.register_bucket("/api/v10/channels/1/messages", "abc")
    assert limiter.bucket_for("/api/v10/channels/2/messages") == "abc"
    limiter.register_bucket("/api/v10/channels/3/messages", "other")
    assert limiter.bucket_for("/api/v10/channels/3/messages") == "abc"


def test_rate_limiter_limit_and_lift():
    limiter = RateLimiter()
    limiter.limit("abc", 1000, 10.0)
    assert limiter.is_limited("abc", 10.5)
    assert "abc" in limiter
    assert not limiter.is_limited("abc", 12.0)
    assert "abc" not in limiter


def test_rate_limiter_invalid_bucket_never_limited():
    limiter = RateLimiter()
    limiter.limit(INVALID_BUCKET, 10_000, 0.0)
    assert not limiter.is_limited(INVALID_BUCKET, 1.0)


def test_prepare_request_api_target_and_headers():
    client = HttpClient("token", FakeTransport())
    request = client.prepare_request("POST", "/users/@me/channels", '{"a":1}', True)
    assert request.target == API_PREFIX + "/users/@me/channels"
    assert request.headers["Authorization"] == "Bot token"
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["Content-Length"] == str(len('{"a":1}'))
    assert request.body == '{"a":1}'


def test_prepare_request_without_api_prefix_and_body():
    client = HttpClient("token", FakeTransport())
    request = client.prepare_request("GET", "/gateway", "", False)
    assert request.target == "/gateway"
    assert "Content-Type" not in request.headers
    assert "Content-Length" not in request.headers


def test_get_delivers_response_to_callback():
    transport = FakeTransport([(200, "OK", {}, '{"url": "x"}')])
    client = HttpClient("token", transport)
    received = []
    client.get("/gateway", received.append)
    client.process_queue(now=0.0)
    assert received == [Response(200, "OK", '{"url": "x"}')]
    assert transport.sent[0].method == "GET"
    assert transport.sent[0].target == API_PREFIX + "/gateway"


def test_requests_sent_in_order():
    transport = FakeTransport()
    client = HttpClient("token", transport)
    client.put("/a")
    client.patch("/b", "{}")
    client.delete("/c")
    client.process_queue(now=0.0)
    assert [(r.method, r.target) for r in transport.sent] == [
        ("PUT", API_PREFIX + "/a"),
        ("PATCH", API_PREFIX + "/b"),
        ("DELETE", API_PREFIX + "/c"),
    ]


def test_rate_limited_bucket_waits():
    headers = {
        "X-RateLimit-Remaining": "0",
        "X-RateLimit-Bucket": "abc",
        "X-RateLimit-Reset-After": "1.000",
    }
    transport = FakeTransport([(200, "OK", headers, "{}")])
    client = HttpClient("token", transport)
    client.post("/channels/1/messages", "{}")
    client.process_queue(now=100.0)
    client.post("/channels/2/messages", "{}")
    client.process_queue(now=100.5)
    assert len(transport.sent) == 1
    client.process_queue(now=102.0)
    assert len(transport.sent) == 2


def test_failed_request_is_discarded_after_retries():
    transport = FakeTransport(fail_sends=math.inf)
    client = HttpClient("token", transport)
    received = []
    client.post("/channels/1/messages", "{}", received.append)
    client.process_queue(now=0.0)
    assert received == []
    assert len(transport.sent) == MAX_RETRIES + 1
    assert transport.connects == MAX_RETRIES


def test_transient_failure_is_retried():
    transport = FakeTransport(fail_sends=1)
    client = HttpClient("token", transport)
    received = []
    client.post("/x", "{}", received.append)
    client.process_queue(now=0.0)
    assert [r.status for r in received] == [200]
    assert len(transport.sent) == 2


def test_default_callback_logs_at_debug(caplog):
    caplog.set_level(logging.DEBUG, logger="dcconnect.rest")
    transport = FakeTransport([(204, "No Content", {}, "")])
    client = HttpClient("token", transport)
    client.delete("/channels/5")
    client.process_queue(now=0.0)
    assert any("--> 204" in record.getMessage() for record in caplog.records)


def test_background_worker_sends_requests():
    transport = FakeTransport()
    done = threading.Event()
    received = []

    def on_response(response):
        received.append(response)
        done.set()

    with HttpClient("token", transport) as client:
        client.post("/x", "{}", on_response)
        assert done.wait(5)
    assert received[0].status == 200
    assert transport.connects == 1
    assert transport.closes == 1


def test_start_twice_raises():
    client = HttpClient("token", FakeTransport())
    client.start()
    try:
        with pytest.raises(RuntimeError):
            client.start()
    finally:
        client.close()