"""Tests for the fetch/reconcile scheduler."""

import asyncio

import httpx
import pytest

from common.types import RefreshResult, Severity


@pytest.mark.asyncio
async def test_refresh_loads_files_into_cache(engine, relay):
    relay.add_file("a.txt")
    relay.add_file("b.txt", ipfs_hash="QmB")

    result = await engine.refresh()

    assert result is RefreshResult.UPDATED
    assert [r.display_name for r in engine.files()] == ["a.txt", "b.txt"]
    assert engine.files()[1].remote_hash == "QmB"


@pytest.mark.asyncio
async def test_second_request_within_interval_is_throttled(engine, relay, clock):
    relay.add_file("a.txt")

    first = await engine.refresh()
    clock.advance(200)
    second = await engine.refresh()

    assert first is RefreshResult.UPDATED
    assert second is RefreshResult.THROTTLED
    assert relay.count("GET", "/files/all") == 1
    assert engine.scheduler.fetch_count == 1


@pytest.mark.asyncio
async def test_request_after_interval_fetches_again(engine, relay, clock):
    await engine.refresh()
    clock.advance(1000)

    await engine.refresh()

    assert relay.count("GET", "/files/all") == 2


@pytest.mark.asyncio
async def test_overlapping_request_is_busy(engine, relay, clock):
    relay.list_gate = asyncio.Event()
    first = asyncio.create_task(engine.refresh())
    while not engine.session.is_loading:
        await asyncio.sleep(0)

    clock.advance(5000)
    overlapping = await engine.refresh()
    forced = await engine.force_refresh()
    relay.list_gate.set()
    await first

    assert overlapping is RefreshResult.BUSY
    assert forced is RefreshResult.BUSY
    assert relay.count("GET", "/files/all") == 1
    assert not engine.session.is_loading


@pytest.mark.asyncio
async def test_unchanged_listing_is_a_noop(engine, relay, clock):
    relay.add_file("a.txt")
    await engine.refresh()
    generation = engine.store.read().generation

    clock.advance(1000)
    result = await engine.refresh()

    assert result is RefreshResult.UNCHANGED
    assert engine.store.read().generation == generation


@pytest.mark.asyncio
async def test_force_refresh_bypasses_throttle_and_noop(engine, relay):
    relay.add_file("a.txt")
    await engine.refresh()
    generation = engine.store.read().generation

    result = await engine.force_refresh()

    assert result is RefreshResult.UPDATED
    assert engine.store.read().generation == generation + 1
    forced_request = relay.requests[-1]
    assert forced_request.url.params.get("_force") == "true"
    assert "_nocache" in forced_request.url.params


@pytest.mark.asyncio
async def test_force_refresh_throttles_immediate_normal_refresh(engine, relay):
    await engine.force_refresh()

    assert await engine.refresh() is RefreshResult.THROTTLED


@pytest.mark.asyncio
async def test_transport_failure_clears_cache_and_notifies(engine, relay, clock):
    relay.add_file("a.txt")
    await engine.refresh()
    relay.overrides["/files/all"] = httpx.ConnectError("connection refused")

    clock.advance(1000)
    result = await engine.refresh()

    assert result is RefreshResult.FAILED
    assert engine.files() == ()
    errors = [n for n in engine.notifications() if n.severity is Severity.ERROR]
    assert len(errors) == 1
    assert errors[0].message.startswith("Failed to load files")
    assert not engine.session.is_loading


@pytest.mark.asyncio
async def test_malformed_body_clears_cache(engine, relay):
    relay.add_file("a.txt")
    relay.overrides["/files/all"] = httpx.Response(200, text="<html>oops</html>")

    result = await engine.refresh()

    assert result is RefreshResult.FAILED
    assert engine.files() == ()


@pytest.mark.asyncio
async def test_undecodable_body_clears_cache(engine, relay, clock):
    relay.add_file("a.txt")
    await engine.refresh()
    relay.overrides["/files/all"] = lambda request: httpx.Response(
        200, headers={"Content-Encoding": "gzip"}, content=b"not gzip at all",
    )

    clock.advance(1000)
    result = await engine.refresh()

    assert result is RefreshResult.FAILED
    assert engine.files() == ()
    assert not engine.session.is_loading


@pytest.mark.asyncio
async def test_rejected_listing_keeps_cache(engine, relay, clock):
    relay.add_file("a.txt")
    await engine.refresh()
    relay.overrides["/files/all"] = httpx.Response(200, json={"success": False, "error": "maintenance"})

    clock.advance(1000)
    result = await engine.refresh()

    assert result is RefreshResult.REJECTED
    assert [r.display_name for r in engine.files()] == ["a.txt"]
    assert any(n.severity is Severity.WARNING for n in engine.notifications())


@pytest.mark.asyncio
async def test_listing_duplicates_are_resolved(engine, relay):
    relay.add_file("report.pdf", size=50, mime="application/pdf", timestamp=1, file_id="old")
    relay.add_file("report.pdf", size=50, mime="application/pdf", timestamp=2, file_id="new")
    relay.files.append(dict(relay.files[0]))

    await engine.refresh()

    assert [r.id for r in engine.files()] == ["new"]


@pytest.mark.asyncio
async def test_invalid_entries_are_skipped(engine, relay):
    relay.add_file("good.txt")
    relay.files.append({"id": "broken"})
    relay.files.append("garbage")

    await engine.refresh()

    assert [r.display_name for r in engine.files()] == ["good.txt"]


@pytest.mark.asyncio
async def test_search_uses_search_endpoint(engine, relay):
    relay.add_file("report.pdf", mime="application/pdf")
    relay.add_file("photo.png", mime="image/png")

    result = await engine.refresh({"name": "report", "mimetype": ""})

    assert result is RefreshResult.UPDATED
    assert relay.count("GET", "/files/search") == 1
    assert "mimetype" not in relay.requests[-1].url.params
    assert [r.display_name for r in engine.files()] == ["report.pdf"]


@pytest.mark.asyncio
async def test_refresh_if_empty_only_loads_empty_cache(engine, relay, clock):
    relay.add_file("a.txt")

    assert await engine.scheduler.refresh_if_empty() is RefreshResult.UPDATED
    clock.advance(5000)
    assert await engine.scheduler.refresh_if_empty() is RefreshResult.UNCHANGED
    assert relay.count("GET", "/files/all") == 1


@pytest.mark.asyncio
async def test_requests_carry_auth_and_no_cache_headers(engine, relay):
    await engine.refresh()

    request = relay.requests[-1]
    assert request.headers["Authorization"] == "Bearer test-token"
    assert "no-cache" in request.headers["Cache-Control"]
    assert request.headers["X-Request-ID"]
