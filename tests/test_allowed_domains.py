import asyncio

import httpx

from focusflow.allowed_domains import (
    DEFAULT_ALLOWED_DOMAINS,
    AllowedDomainsCache,
    parse_domains_payload,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _cache(handler, endpoints=None, clock=None) -> AllowedDomainsCache:
    return AllowedDomainsCache(
        endpoints=endpoints or ["http://primary.test/cfg", "http://backup.test/cfg"],
        transport=httpx.MockTransport(handler),
        clock=clock or FakeClock(),
    )


def test_first_successful_endpoint_wins() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.host)
        if request.url.host == "down.test":
            return httpx.Response(503)
        return httpx.Response(200, json={"domains": ["Flow.Example", " app.test "]})

    cache = _cache(
        handler,
        endpoints=[
            "http://down.test/cfg",
            "http://up.test/cfg",
            "http://never.test/cfg",
        ],
    )
    domains = asyncio.run(cache.refresh())

    assert domains == ("flow.example", "app.test")
    assert cache.domains == domains
    assert calls == ["down.test", "up.test"]
    assert cache.is_fresh() is True


def test_connection_errors_fall_through_to_next_endpoint() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "primary.test":
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json={"domains": ["backup.example"]})

    cache = _cache(handler)
    assert asyncio.run(cache.refresh()) == ("backup.example",)


def test_total_failure_keeps_defaults() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "primary.test":
            return httpx.Response(200, content=b"<html>not json</html>")
        return httpx.Response(200, json={"unexpected": True})

    cache = _cache(handler)
    assert asyncio.run(cache.refresh()) == DEFAULT_ALLOWED_DOMAINS
    assert cache.domains == DEFAULT_ALLOWED_DOMAINS
    assert cache.last_fetch is None
    assert cache.is_fresh() is False


def test_failure_after_success_keeps_previous_value() -> None:
    responses = [
        httpx.Response(200, json={"domains": ["first.example"]}),
        httpx.Response(500),
        httpx.Response(500),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    cache = _cache(handler)
    asyncio.run(cache.refresh())
    asyncio.run(cache.refresh(force=True))
    assert cache.domains == ("first.example",)


def test_fresh_cache_skips_network_until_ttl_passes() -> None:
    calls = []
    clock = FakeClock()

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.host)
        return httpx.Response(200, json={"domains": ["example.test"]})

    cache = _cache(handler, clock=clock)
    asyncio.run(cache.refresh())
    asyncio.run(cache.refresh())
    assert len(calls) == 1

    clock.now += 299
    asyncio.run(cache.refresh())
    assert len(calls) == 1

    clock.now += 2
    asyncio.run(cache.refresh())
    assert len(calls) == 2


def test_no_endpoints_is_not_an_error() -> None:
    cache = AllowedDomainsCache(endpoints=[], defaults=["only.test"])
    assert asyncio.run(cache.refresh()) == ("only.test",)


def test_payload_validation() -> None:
    assert parse_domains_payload({"domains": ["a.test", "B.test"]}) == ("a.test", "b.test")
    assert parse_domains_payload({"domains": []}) is None
    assert parse_domains_payload({"domains": ["", "  "]}) is None
    assert parse_domains_payload({"domains": "a.test"}) is None
    assert parse_domains_payload({"domains": ["a.test", 3]}) is None
    assert parse_domains_payload(["a.test"]) is None
