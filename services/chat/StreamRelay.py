"""Relays the provider's token stream to the HTTP response.

State machine::

    idle -> open -> (emitting)* -> closed | aborted | errored

Deltas are written the moment they arrive, in arrival order, with no local
buffering. There is no reconnect or resume: a dropped stream is lost.
"""

import asyncio
import json
from enum import Enum
from typing import AsyncIterator

from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import RequestCancelledError, UpstreamStreamError

TEXT_MEDIA_TYPE = "text/plain; charset=utf-8"
NDJSON_MEDIA_TYPE = "application/x-ndjson"

# returned by _next_delta when cancellation wins the race against the upstream
_CANCELLED = object()


async def _read_next(iterator: AsyncIterator[str]) -> str:
    return await iterator.__anext__()


class TransportState(str, Enum):
    IDLE = "idle"
    OPEN = "open"
    EMITTING = "emitting"
    CLOSED = "closed"
    ABORTED = "aborted"
    ERRORED = "errored"


class StreamFormat(str, Enum):
    # raw token bytes; a failure after the first byte just cuts the body short
    TEXT = "text"
    # one JSON object per line: delta / done / error frames
    NDJSON = "ndjson"


class StreamRelay:
    """One-shot relay from an upstream delta iterator to encoded output chunks.

    Args:
        helper_config (HelperConfig): Provides the logger.
        upstream (AsyncIterator[str]): Text deltas from the completion provider.
            Must be an async generator (or expose aclose()) so it can be closed on abort.
        stream_format (StreamFormat): Wire format of the output.
        cancel_event (asyncio.Event | None): Out-of-band cancellation signal.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        upstream: AsyncIterator[str],
        stream_format: StreamFormat = StreamFormat.TEXT,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._upstream = upstream
        self._format = stream_format
        self._cancel_event = cancel_event or asyncio.Event()
        self._state = TransportState.IDLE
        self._parts: list[str] = []
        self._upstream_closed = False
        self._pending: list[str] = []
        self._exhausted = False

    ##########################################
    ################ GETTER ##################
    ##########################################

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def text(self) -> str:
        """Everything relayed so far."""
        return "".join(self._parts)

    @property
    def media_type(self) -> str:
        return NDJSON_MEDIA_TYPE if self._format == StreamFormat.NDJSON else TEXT_MEDIA_TYPE

    @property
    def delta_count(self) -> int:
        return len(self._parts)

    ##########################################
    ############### CONTROL ##################
    ##########################################

    def cancel(self) -> None:
        """Request cancellation. No delta is emitted after this call returns."""
        self._cancel_event.set()

    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    ##########################################
    ############### ENCODING #################
    ##########################################

    def _encode_delta(self, delta: str) -> bytes:
        if self._format == StreamFormat.NDJSON:
            return (json.dumps({"type": "delta", "content": delta}, ensure_ascii=False) + "\n").encode("utf-8")
        return delta.encode("utf-8")

    @staticmethod
    def _encode_frame(frame: dict) -> bytes:
        return (json.dumps(frame, ensure_ascii=False) + "\n").encode("utf-8")

    ##########################################
    ################ RELAY ###################
    ##########################################

    async def _close_upstream(self) -> None:
        if self._upstream_closed:
            return
        self._upstream_closed = True
        aclose = getattr(self._upstream, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            self.logging.warning("Closing the upstream completion stream failed: %s", e)

    async def _next_delta(self, iterator: AsyncIterator[str]):
        """Next item of iterator, or _CANCELLED as soon as cancellation is requested.

        The pending read is cancelled when the cancel signal arrives first, so a
        stalled provider is not waited on.

        Raises:
            StopAsyncIteration: When the iterator is exhausted.
        """
        if self.is_cancelled():
            return _CANCELLED

        read = asyncio.create_task(_read_next(iterator))
        cancel_wait = asyncio.create_task(self._cancel_event.wait())
        try:
            await asyncio.wait({read, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            pending = {task for task in (read, cancel_wait) if not task.done()}
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.wait(pending)

        if self.is_cancelled():
            if not read.cancelled() and read.exception() is not None:
                self.logging.debug("Upstream read ended after cancellation: %s", read.exception())
            return _CANCELLED
        return read.result()

    async def do_open(self) -> None:
        """Wait for the first delta (idle -> open).

        Called before the HTTP response starts, so a provider that fails up
        front still produces a proper error status instead of an empty 200.

        Raises:
            RequestCancelledError: If cancellation was requested before opening.
            UpstreamStreamError: If the provider fails before the first delta.
        """
        if self._state != TransportState.IDLE:
            raise RuntimeError(f"StreamRelay can only be opened once (state: {self._state.value}).")

        try:
            while True:
                delta = await self._next_delta(self._upstream)
                if delta is _CANCELLED:
                    self._state = TransportState.ABORTED
                    await self._close_upstream()
                    raise RequestCancelledError("Request was cancelled before the completion started.")
                if delta:
                    self._pending.append(delta)
                    break
        except RequestCancelledError:
            raise
        except StopAsyncIteration:
            self._exhausted = True
        except Exception as e:
            self._state = TransportState.ERRORED
            await self._close_upstream()
            if isinstance(e, UpstreamStreamError):
                raise
            raise UpstreamStreamError(f"Completion stream failed to start: {e}") from e

        self._state = TransportState.OPEN

    async def _iter_deltas(self) -> AsyncIterator[str]:
        while self._pending:
            yield self._pending.pop(0)
        if self._exhausted:
            return
        async for delta in self._upstream:
            yield delta

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """Yield encoded output chunks until the upstream ends, fails or is cancelled.

        Opens the relay first if do_open() was not called.

        Raises:
            UpstreamStreamError: In text format, when the provider fails mid-stream.
            RuntimeError: If the relay is iterated twice.
        """
        if self._state == TransportState.IDLE:
            self._state = TransportState.OPEN
        elif self._state != TransportState.OPEN:
            raise RuntimeError(f"StreamRelay can only be consumed once (state: {self._state.value}).")

        deltas = self._iter_deltas()
        try:
            while True:
                try:
                    delta = await self._next_delta(deltas)
                except StopAsyncIteration:
                    break
                if delta is _CANCELLED:
                    self._state = TransportState.ABORTED
                    break
                if not delta:
                    continue
                self._state = TransportState.EMITTING
                self._parts.append(delta)
                yield self._encode_delta(delta)
                if self.is_cancelled():
                    self._state = TransportState.ABORTED
                    break

            if self._state in (TransportState.OPEN, TransportState.EMITTING):
                self._state = TransportState.CLOSED

        except (asyncio.CancelledError, GeneratorExit):
            # consumer went away (client disconnect)
            self._state = TransportState.ABORTED
            raise

        except Exception as e:
            self._state = TransportState.ERRORED
            self.logging.error("Completion stream failed after %d delta(s): %s", len(self._parts), e)
            if self._format == StreamFormat.NDJSON:
                yield self._encode_frame({"type": "error", "message": "The response was interrupted."})
            elif isinstance(e, UpstreamStreamError):
                raise
            else:
                raise UpstreamStreamError(f"Completion stream failed: {e}") from e

        finally:
            await deltas.aclose()
            await self._close_upstream()

        if self._state == TransportState.ABORTED:
            self.logging.info("Stream aborted by the client after %d delta(s).", len(self._parts))
            return

        if self._state == TransportState.CLOSED:
            if self._format == StreamFormat.NDJSON:
                yield self._encode_frame({"type": "done"})
            self.logging.info("Stream closed normally: %d delta(s), %d characters.", len(self._parts), len(self.text))
