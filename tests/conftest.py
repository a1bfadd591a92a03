import asyncio
import logging
import os
import tempfile
from unittest.mock import AsyncMock, MagicMock

import pytest

# logging_setup writes to $ROOT_DIR/logs on import of the app module
os.environ.setdefault("ROOT_DIR", tempfile.mkdtemp(prefix="chat_bridge_tests_"))

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.search.SearchClientInterface import SearchClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger
from shared.models.errors import UpstreamStreamError
from shared.models.search import SearchHit

_ENV_PREFIXES = (
    "LLM_", "EMBED_", "STORE_", "AUTH_", "RATELIMIT_", "SEARCH_",
    "CHAT_", "KNOWLEDGE_", "SCRAPE_", "EDGE_",
)


class ScriptedUpstream:
    """Stands in for LLMClientInterface.do_stream_chat.

    Every call records its arguments and returns a fresh async generator over
    the scripted deltas. closed/completed/yielded tell what happened to it.
    """

    def __init__(self, deltas: list[str], fail_at: int | None = None) -> None:
        self.deltas = list(deltas)
        self.fail_at = fail_at
        self.calls: list[dict] = []
        self.yielded = 0
        self.closed = False
        self.completed = False

    def __call__(self, messages, **kwargs):
        self.calls.append({"messages": messages, **kwargs})
        return self._stream()

    async def _stream(self):
        try:
            for index, delta in enumerate(self.deltas):
                if self.fail_at is not None and index == self.fail_at:
                    raise UpstreamStreamError("Completion stream failed: connection reset")
                self.yielded += 1
                yield delta
                await asyncio.sleep(0)
            self.completed = True
        finally:
            self.closed = True


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def logger():
    return ColorLogger(logging.getLogger("chat_bridge.tests"))


@pytest.fixture
def helper_config(logger):
    return HelperConfig(logger=logger)


@pytest.fixture
def make_upstream():
    def _make(deltas=("Hello", " world"), fail_at=None) -> ScriptedUpstream:
        return ScriptedUpstream(list(deltas), fail_at=fail_at)
    return _make


@pytest.fixture
def upstream(make_upstream):
    return make_upstream()


@pytest.fixture
def fake_llm(upstream):
    llm = MagicMock(spec=LLMClientInterface)
    llm.chat_model = "test-model"
    llm.default_temperature = 0.7
    llm.do_chat = AsyncMock(return_value="rewritten keyword")
    llm.do_stream_chat = MagicMock(side_effect=upstream)
    return llm


@pytest.fixture
def fake_embed():
    embed = MagicMock(spec=EmbedClientInterface)
    embed.do_embed_query = AsyncMock(return_value=[1.0, 0.0, 0.0])

    async def _embed(texts):
        texts = [texts] if isinstance(texts, str) else texts
        return [[1.0, 0.0, 0.0] for _ in texts]

    embed.do_embed = AsyncMock(side_effect=_embed)
    return embed


@pytest.fixture
def fake_search():
    search = MagicMock(spec=SearchClientInterface)
    search.do_search = AsyncMock(return_value=[
        SearchHit(title="Result one", link="https://example.com/1", snippet="First snippet"),
        SearchHit(title="Result two", link="https://example.com/2", snippet="Second snippet"),
    ])
    return search
