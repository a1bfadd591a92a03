import asyncio
import json

import pytest

from shared.models.errors import RequestCancelledError, UpstreamStreamError
from services.chat.StreamRelay import NDJSON_MEDIA_TYPE, TEXT_MEDIA_TYPE, StreamFormat, StreamRelay, TransportState


async def _collect(relay: StreamRelay) -> list[bytes]:
    return [chunk async for chunk in relay.iter_bytes()]


class TestTextFormat:
    @pytest.mark.asyncio
    async def test_deltas_are_relayed_in_arrival_order(self, helper_config, upstream):
        relay = StreamRelay(helper_config, upstream([]))
        await relay.do_open()
        chunks = await _collect(relay)

        assert chunks == [b"Hello", b" world"]
        assert b"".join(chunks).decode("utf-8") == "Hello world"
        assert relay.state == TransportState.CLOSED
        assert relay.text == "Hello world"
        assert relay.media_type == TEXT_MEDIA_TYPE
        assert upstream.closed

    @pytest.mark.asyncio
    async def test_iterating_without_open_still_streams(self, helper_config, upstream):
        relay = StreamRelay(helper_config, upstream([]))
        chunks = await _collect(relay)
        assert b"".join(chunks) == b"Hello world"

    @pytest.mark.asyncio
    async def test_empty_deltas_are_skipped(self, helper_config, make_upstream):
        scripted = make_upstream(["", "a", "", "b"])
        relay = StreamRelay(helper_config, scripted([]))
        await relay.do_open()
        assert await _collect(relay) == [b"a", b"b"]
        assert relay.delta_count == 2

    @pytest.mark.asyncio
    async def test_multibyte_text_is_utf8_encoded(self, helper_config, make_upstream):
        scripted = make_upstream(["Halo ", "dunia 🌏"])
        relay = StreamRelay(helper_config, scripted([]))
        chunks = await _collect(relay)
        assert b"".join(chunks).decode("utf-8") == "Halo dunia 🌏"

    @pytest.mark.asyncio
    async def test_relay_cannot_be_consumed_twice(self, helper_config, upstream):
        relay = StreamRelay(helper_config, upstream([]))
        await _collect(relay)
        with pytest.raises(RuntimeError):
            await _collect(relay)

    @pytest.mark.asyncio
    async def test_mid_stream_failure_propagates_in_text_mode(self, helper_config, make_upstream):
        scripted = make_upstream(["one", "two", "three"], fail_at=2)
        relay = StreamRelay(helper_config, scripted([]))
        await relay.do_open()

        received = []
        with pytest.raises(UpstreamStreamError):
            async for chunk in relay.iter_bytes():
                received.append(chunk)

        assert received == [b"one", b"two"]
        assert relay.state == TransportState.ERRORED
        assert scripted.closed


class TestOpen:
    @pytest.mark.asyncio
    async def test_failure_before_first_delta_raises_on_open(self, helper_config, make_upstream):
        scripted = make_upstream(["never"], fail_at=0)
        relay = StreamRelay(helper_config, scripted([]))

        with pytest.raises(UpstreamStreamError):
            await relay.do_open()
        assert relay.state == TransportState.ERRORED
        assert scripted.closed

    @pytest.mark.asyncio
    async def test_open_with_cancel_already_set(self, helper_config, upstream):
        event = asyncio.Event()
        event.set()
        relay = StreamRelay(helper_config, upstream([]), cancel_event=event)

        with pytest.raises(RequestCancelledError):
            await relay.do_open()
        assert relay.state == TransportState.ABORTED
        assert upstream.yielded == 0

    @pytest.mark.asyncio
    async def test_empty_upstream_closes_cleanly(self, helper_config, make_upstream):
        scripted = make_upstream([])
        relay = StreamRelay(helper_config, scripted([]))
        await relay.do_open()
        assert await _collect(relay) == []
        assert relay.state == TransportState.CLOSED


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_after_two_of_five_deltas(self, helper_config, make_upstream):
        scripted = make_upstream(["a", "b", "c", "d", "e"])
        relay = StreamRelay(helper_config, scripted([]))
        await relay.do_open()

        received = []
        async for chunk in relay.iter_bytes():
            received.append(chunk)
            if len(received) == 2:
                relay.cancel()

        assert received == [b"a", b"b"]
        assert relay.state == TransportState.ABORTED
        assert relay.is_cancelled()
        # the upstream generator was closed before it produced everything
        assert scripted.closed
        assert not scripted.completed
        assert scripted.yielded < 5

    @pytest.mark.asyncio
    async def test_external_cancel_event_stops_the_relay(self, helper_config, make_upstream):
        scripted = make_upstream(["a", "b", "c"])
        event = asyncio.Event()
        relay = StreamRelay(helper_config, scripted([]), cancel_event=event)

        received = []
        async for chunk in relay.iter_bytes():
            received.append(chunk)
            event.set()

        assert received == [b"a"]
        assert relay.state == TransportState.ABORTED

    @pytest.mark.asyncio
    async def test_cancel_while_provider_is_stalled(self, helper_config):
        never = asyncio.Event()
        upstream_state = {"closed": False}

        async def stalled():
            try:
                yield "Hel"
                await never.wait()
                yield "lo"
            finally:
                upstream_state["closed"] = True

        relay = StreamRelay(helper_config, stalled())
        await relay.do_open()
        received = []

        async def consume():
            async for chunk in relay.iter_bytes():
                received.append(chunk)

        consumer = asyncio.create_task(consume())
        while not received:
            await asyncio.sleep(0)
        # the consumer is now waiting on the next upstream read
        await asyncio.sleep(0.01)
        relay.cancel()
        await asyncio.wait_for(consumer, timeout=1)

        assert received == [b"Hel"]
        assert relay.state == TransportState.ABORTED
        assert upstream_state["closed"]

    @pytest.mark.asyncio
    async def test_cancel_while_waiting_for_first_delta(self, helper_config):
        never = asyncio.Event()
        cancel_event = asyncio.Event()

        async def silent():
            await never.wait()
            yield "late"

        relay = StreamRelay(helper_config, silent(), cancel_event=cancel_event)
        opener = asyncio.create_task(relay.do_open())
        await asyncio.sleep(0.01)
        cancel_event.set()

        with pytest.raises(RequestCancelledError):
            await asyncio.wait_for(opener, timeout=1)
        assert relay.state == TransportState.ABORTED

    @pytest.mark.asyncio
    async def test_consumer_closing_the_iterator_aborts(self, helper_config, make_upstream):
        scripted = make_upstream(["a", "b", "c"])
        relay = StreamRelay(helper_config, scripted([]))
        iterator = relay.iter_bytes()

        assert await iterator.__anext__() == b"a"
        await iterator.aclose()

        assert relay.state == TransportState.ABORTED
        assert scripted.closed
        assert not scripted.completed


class TestNdjsonFormat:
    @pytest.mark.asyncio
    async def test_frames_end_with_done(self, helper_config, upstream):
        relay = StreamRelay(helper_config, upstream([]), stream_format=StreamFormat.NDJSON)
        await relay.do_open()
        frames = [json.loads(line) for line in b"".join(await _collect(relay)).decode("utf-8").splitlines()]

        assert relay.media_type == NDJSON_MEDIA_TYPE
        assert frames == [
            {"type": "delta", "content": "Hello"},
            {"type": "delta", "content": " world"},
            {"type": "done"},
        ]

    @pytest.mark.asyncio
    async def test_mid_stream_failure_writes_error_frame(self, helper_config, make_upstream):
        scripted = make_upstream(["one", "two"], fail_at=1)
        relay = StreamRelay(helper_config, scripted([]), stream_format=StreamFormat.NDJSON)
        await relay.do_open()
        frames = [json.loads(line) for line in b"".join(await _collect(relay)).decode("utf-8").splitlines()]

        assert frames[0] == {"type": "delta", "content": "one"}
        assert frames[-1]["type"] == "error"
        assert all(frame["type"] != "done" for frame in frames)
        assert relay.state == TransportState.ERRORED
