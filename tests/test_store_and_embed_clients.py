import json

import httpx
import pytest

from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.embed.google.EmbedClientGoogle import EmbedClientGoogle
from shared.clients.embed.ollama.EmbedClientOllama import EmbedClientOllama
from shared.clients.store.StoreClientManager import StoreClientManager
from shared.clients.store.memory.StoreClientMemory import StoreClientMemory
from shared.clients.store.supabase.StoreClientSupabase import StoreClientSupabase
from shared.models.chat import ChatSession, ChatTurn
from shared.models.errors import EmbeddingError
from shared.models.knowledge import KnowledgeChunk, KnowledgeMetadata


@pytest.fixture
def ollama_embed_env(monkeypatch):
    monkeypatch.setenv("EMBED_OLLAMA_BASE_URL", "http://ollama.example.com:11434")


@pytest.fixture
def supabase_env(monkeypatch):
    monkeypatch.setenv("STORE_SUPABASE_URL", "https://proj.supabase.example.com/")
    monkeypatch.setenv("STORE_SUPABASE_SERVICE_KEY", "service-key")


def _chunk(content: str, embedding: list[float], source: str = "doc.pdf") -> KnowledgeChunk:
    return KnowledgeChunk(content=content, embedding=embedding, metadata=KnowledgeMetadata(source=source))


class TestEmbedOllama:
    @pytest.mark.asyncio
    async def test_batch_request_and_vectors(self, ollama_embed_env, helper_config):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"embeddings": [[0.1, 0.2], [0.3, 0.4]]})

        client = EmbedClientOllama(helper_config)
        await client.boot(transport=httpx.MockTransport(handler))

        assert await client.do_embed(["a", "b"]) == [[0.1, 0.2], [0.3, 0.4]]
        assert json.loads(seen[0].content) == {"model": "nomic-embed-text", "input": ["a", "b"]}
        assert seen[0].url.path == "/api/embed"

    @pytest.mark.asyncio
    async def test_provider_failure(self, ollama_embed_env, helper_config):
        client = EmbedClientOllama(helper_config)
        await client.boot(transport=httpx.MockTransport(lambda r: httpx.Response(500, text="boom")))
        with pytest.raises(EmbeddingError):
            await client.do_embed_query("a")

    @pytest.mark.asyncio
    async def test_malformed_body(self, ollama_embed_env, helper_config):
        client = EmbedClientOllama(helper_config)
        await client.boot(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"embeddings": []})))
        with pytest.raises(EmbeddingError):
            await client.do_embed_query("a")

    @pytest.mark.asyncio
    async def test_vector_count_mismatch(self, ollama_embed_env, helper_config):
        client = EmbedClientOllama(helper_config)
        await client.boot(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"embeddings": [[0.1]]})))
        with pytest.raises(EmbeddingError):
            await client.do_embed(["a", "b"])

    @pytest.mark.asyncio
    async def test_dimension_mismatch(self, ollama_embed_env, monkeypatch, helper_config):
        monkeypatch.setenv("EMBED_DIMENSIONS", "768")
        client = EmbedClientOllama(helper_config)
        await client.boot(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"embeddings": [[0.1, 0.2]]})))
        with pytest.raises(EmbeddingError, match="dimensionality"):
            await client.do_embed_query("a")


class TestEmbedGoogle:
    @pytest.mark.asyncio
    async def test_batch_embed_contents(self, monkeypatch, helper_config):
        monkeypatch.setenv("EMBED_GOOGLE_API_KEY", "g-key")
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"embeddings": [{"values": [0.5, 0.5]}]})

        client = EmbedClientGoogle(helper_config)
        await client.boot(transport=httpx.MockTransport(handler))

        assert await client.do_embed_query("hello") == [0.5, 0.5]
        assert seen[0].url.path.endswith("/models/embedding-001:batchEmbedContents")
        assert seen[0].headers["x-goog-api-key"] == "g-key"
        body = json.loads(seen[0].content)
        assert body["requests"][0]["content"]["parts"][0]["text"] == "hello"


class TestEmbedManager:
    def test_unconfigured_gives_none(self, helper_config):
        assert EmbedClientManager(helper_config).get_client() is None

    def test_configured_engine(self, ollama_embed_env, monkeypatch, helper_config):
        monkeypatch.setenv("EMBED_ENGINE", "ollama")
        assert isinstance(EmbedClientManager(helper_config).get_client(), EmbedClientOllama)


class TestStoreMemory:
    @pytest.mark.asyncio
    async def test_matches_are_thresholded_sorted_and_capped(self, helper_config):
        store = StoreClientMemory(helper_config)
        await store.do_insert_knowledge([
            _chunk("far", [0.0, 1.0]),
            _chunk("close", [1.0, 0.1]),
            _chunk("exact", [1.0, 0.0]),
            _chunk("near", [1.0, 0.5]),
        ])

        matches = await store.do_match_knowledge([1.0, 0.0], match_threshold=0.5, match_count=2)

        assert [m.content for m in matches] == ["exact", "close"]
        assert matches[0].similarity >= matches[1].similarity >= 0.5

    @pytest.mark.asyncio
    async def test_zero_count_returns_nothing(self, helper_config):
        store = StoreClientMemory(helper_config)
        await store.do_insert_knowledge([_chunk("exact", [1.0, 0.0])])
        assert await store.do_match_knowledge([1.0, 0.0], match_threshold=0.0, match_count=0) == []

    @pytest.mark.asyncio
    async def test_conditional_update(self, helper_config):
        store = StoreClientMemory(helper_config)
        await store.do_upsert_session(ChatSession(id="s1", user_id="u1", version=1))

        assert await store.do_update_session_if_version(ChatSession(id="s1", user_id="u1", version=2), 0) is None
        assert (await store.do_update_session_if_version(ChatSession(id="s1", user_id="u1", version=2), 1)).version == 2

    def test_manager_defaults_to_memory(self, helper_config):
        assert isinstance(StoreClientManager(helper_config).get_client(), StoreClientMemory)


class TestStoreSupabase:
    @pytest.mark.asyncio
    async def test_match_knowledge_calls_the_procedure(self, supabase_env, helper_config):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[
                {"id": 2, "content": "low", "metadata": {"source": "b"}, "similarity": 0.55},
                {"id": 1, "content": "high", "metadata": {"source": "a"}, "similarity": 0.91},
                {"id": 3, "content": "below", "metadata": {}, "similarity": 0.2},
            ])

        store = StoreClientSupabase(helper_config)
        await store.boot(transport=httpx.MockTransport(handler))
        matches = await store.do_match_knowledge([0.1, 0.2], match_threshold=0.5, match_count=5)

        assert [m.content for m in matches] == ["high", "low"]
        request = seen[0]
        assert str(request.url) == "https://proj.supabase.example.com/rest/v1/rpc/match_knowledge"
        assert request.headers["apikey"] == "service-key"
        assert json.loads(request.content) == {"query_embedding": [0.1, 0.2], "match_threshold": 0.5, "match_count": 5}

    @pytest.mark.asyncio
    async def test_bulk_insert_is_one_request(self, supabase_env, helper_config):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201)

        store = StoreClientSupabase(helper_config)
        await store.boot(transport=httpx.MockTransport(handler))
        assert await store.do_insert_knowledge([_chunk("a", [0.1]), _chunk("b", [0.2])]) == 2

        assert len(seen) == 1
        assert seen[0].url.path == "/rest/v1/knowledge"
        assert seen[0].headers["prefer"] == "return=minimal"
        assert len(json.loads(seen[0].content)) == 2

    @pytest.mark.asyncio
    async def test_upsert_session_merges_duplicates(self, supabase_env, helper_config):
        seen: list[httpx.Request] = []
        session = ChatSession(id="s1", user_id="u1", title="T", messages=[ChatTurn(role="user", content="hi")])

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json=[json.loads(request.content)])

        store = StoreClientSupabase(helper_config)
        await store.boot(transport=httpx.MockTransport(handler))
        stored = await store.do_upsert_session(session)

        assert stored == session
        assert seen[0].url.params["on_conflict"] == "id"
        assert "resolution=merge-duplicates" in seen[0].headers["prefer"]

    @pytest.mark.asyncio
    async def test_delete_is_owner_scoped(self, supabase_env, helper_config):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        store = StoreClientSupabase(helper_config)
        await store.boot(transport=httpx.MockTransport(handler))

        assert await store.do_delete_session("s1", "u2") is False
        assert seen[0].url.params["user_id"] == "eq.u2"
        assert seen[0].url.params["id"] == "eq.s1"

    @pytest.mark.asyncio
    async def test_http_error_is_raised(self, supabase_env, helper_config):
        store = StoreClientSupabase(helper_config)
        await store.boot(transport=httpx.MockTransport(lambda r: httpx.Response(500, text="db down")))
        with pytest.raises(Exception, match="status 500"):
            await store.do_fetch_session("s1")
