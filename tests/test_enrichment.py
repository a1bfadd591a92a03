from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from shared.clients.store.memory.StoreClientMemory import StoreClientMemory
from shared.models.chat import ChatTurn
from shared.models.context import CallerIdentity, EnrichmentKind, EnrichmentResult, RequestContext
from shared.models.errors import EmbeddingError, EnrichmentError
from shared.models.knowledge import KnowledgeChunk, KnowledgeMetadata
from services.enrichment.EnrichmentPipeline import EnrichmentPipeline
from services.enrichment.EnrichmentStrategyInterface import EnrichmentStrategyInterface
from services.enrichment.KnowledgeRetrievalStrategy import KnowledgeRetrievalStrategy
from services.enrichment.UrlScrapeStrategy import UrlScrapeStrategy, find_first_url, html_to_text
from services.enrichment.WebSearchStrategy import WebSearchStrategy

ARTICLE_HTML = """
<html><head><title>T</title><style>.x{color:red}</style><script>var tracking = 1;</script></head>
<body>
  <header>Site header</header>
  <nav>Home | About</nav>
  <div class="ad-banner">Buy now!</div>
  <article><h1>Solar power</h1><p>Solar panels convert sunlight into electricity.</p></article>
  <footer>Copyright</footer>
</body></html>
"""


def _ctx(query: str, web_search: bool = False, messages: list[ChatTurn] | None = None) -> RequestContext:
    return RequestContext(
        caller=CallerIdentity(user_id="u-1"),
        model="test-model",
        temperature=0.7,
        web_search=web_search,
        messages=messages or [ChatTurn(role="user", content=query)],
        query=query,
    )


def _page_transport(html: str = ARTICLE_HTML, status: int = 200, content_type: str = "text/html; charset=utf-8"):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status, text=html, headers={"content-type": content_type})

    return httpx.MockTransport(handler), requests


async def _store_with_chunk(helper_config, embedding: list[float]) -> StoreClientMemory:
    store = StoreClientMemory(helper_config)
    await store.do_insert_knowledge([
        KnowledgeChunk(
            content="Refunds are accepted within 30 days.",
            embedding=embedding,
            metadata=KnowledgeMetadata(source="policy.pdf", uploaded_by="admin@example.com"),
        )
    ])
    return store


class TestUrlHelpers:
    def test_find_first_url_strips_trailing_punctuation(self):
        assert find_first_url("see https://example.com/a?b=1, and http://other.org") == "https://example.com/a?b=1"

    def test_find_first_url_none(self):
        assert find_first_url("no links here") is None

    def test_html_to_text_drops_chrome_and_ads(self):
        text = html_to_text(ARTICLE_HTML)
        assert "Solar panels convert sunlight into electricity." in text
        assert "Site header" not in text
        assert "Home | About" not in text
        assert "Buy now!" not in text
        assert "tracking" not in text
        assert "Copyright" not in text
        assert "\n" not in text


class TestUrlScrapeStrategy:
    @pytest.mark.asyncio
    async def test_scrapes_first_url_with_browser_user_agent(self, helper_config):
        transport, requests = _page_transport()
        strategy = UrlScrapeStrategy(helper_config, transport=transport)
        ctx = _ctx("summarise https://news.example.com/solar please")

        assert strategy.is_applicable(ctx)
        result = await strategy.do_enrich(ctx)

        assert result.kind == EnrichmentKind.SCRAPE
        assert result.source_descriptor == "https://news.example.com/solar"
        assert "Solar panels convert sunlight" in result.injected_text
        assert "Mozilla/5.0" in requests[0].headers["user-agent"]

    @pytest.mark.asyncio
    async def test_text_is_truncated(self, monkeypatch, helper_config):
        monkeypatch.setenv("SCRAPE_MAX_CHARS", "100")
        transport, _ = _page_transport(html="<p>" + "word " * 500 + "</p>")
        strategy = UrlScrapeStrategy(helper_config, transport=transport)

        result = await strategy.do_enrich(_ctx("read https://example.com"))
        assert len(result.injected_text) == 100

    @pytest.mark.asyncio
    async def test_http_error_yields_none(self, helper_config):
        transport, _ = _page_transport(status=404)
        strategy = UrlScrapeStrategy(helper_config, transport=transport)
        assert await strategy.do_enrich(_ctx("read https://example.com/missing")) is None

    @pytest.mark.asyncio
    async def test_non_text_content_yields_none(self, helper_config):
        transport, _ = _page_transport(html="%PDF", content_type="application/pdf")
        strategy = UrlScrapeStrategy(helper_config, transport=transport)
        assert await strategy.do_enrich(_ctx("read https://example.com/file.pdf")) is None

    @pytest.mark.asyncio
    async def test_private_hosts_are_refused(self, helper_config):
        transport, requests = _page_transport()
        strategy = UrlScrapeStrategy(helper_config, transport=transport)

        assert await strategy.do_enrich(_ctx("read http://127.0.0.1:8080/admin")) is None
        assert await strategy.do_enrich(_ctx("read http://localhost/")) is None
        assert requests == []


class TestKnowledgeRetrievalStrategy:
    @pytest.mark.asyncio
    async def test_relevant_chunks_are_joined(self, helper_config, fake_embed):
        store = await _store_with_chunk(helper_config, [1.0, 0.0, 0.0])
        strategy = KnowledgeRetrievalStrategy(helper_config, embed_client=fake_embed, store_client=store)

        result = await strategy.do_enrich(_ctx("what is the refund window?"))

        assert result.kind == EnrichmentKind.KNOWLEDGE
        assert "Refunds are accepted within 30 days." in result.injected_text
        assert result.source_descriptor == "policy.pdf"

    @pytest.mark.asyncio
    async def test_irrelevant_query_yields_none(self, helper_config, fake_embed):
        store = await _store_with_chunk(helper_config, [0.0, 1.0, 0.0])
        strategy = KnowledgeRetrievalStrategy(helper_config, embed_client=fake_embed, store_client=store)
        assert await strategy.do_enrich(_ctx("unrelated")) is None

    def test_not_applicable_without_embed_client(self, helper_config):
        strategy = KnowledgeRetrievalStrategy(helper_config, embed_client=None, store_client=MagicMock())
        assert not strategy.is_applicable(_ctx("anything"))

    @pytest.mark.asyncio
    async def test_embedding_failure_raises_enrichment_error(self, helper_config, fake_embed):
        fake_embed.do_embed_query.side_effect = EmbeddingError("Embedding request failed with status 500.")
        store = await _store_with_chunk(helper_config, [1.0, 0.0, 0.0])
        strategy = KnowledgeRetrievalStrategy(helper_config, embed_client=fake_embed, store_client=store)

        with pytest.raises(EnrichmentError) as exc_info:
            await strategy.do_enrich(_ctx("refunds?"))
        assert isinstance(exc_info.value.__cause__, EmbeddingError)

    def test_disabled_by_config(self, monkeypatch, helper_config, fake_embed):
        monkeypatch.setenv("KNOWLEDGE_ENABLED", "false")
        strategy = KnowledgeRetrievalStrategy(helper_config, embed_client=fake_embed, store_client=MagicMock())
        assert not strategy.is_applicable(_ctx("anything"))


class TestWebSearchStrategy:
    @pytest.mark.asyncio
    async def test_rewrite_then_search(self, helper_config, fake_llm, fake_search):
        strategy = WebSearchStrategy(helper_config, llm_client=fake_llm, search_client=fake_search)
        ctx = _ctx("who won yesterday?", web_search=True)

        result = await strategy.do_enrich(ctx)

        fake_search.do_search.assert_awaited_once_with("rewritten keyword", count=5)
        kwargs = fake_llm.do_chat.await_args.kwargs
        assert kwargs["temperature"] == 0.1
        assert kwargs["max_tokens"] == 60
        assert result.kind == EnrichmentKind.SEARCH
        assert result.injected_text.startswith("1. Result one")
        assert "https://example.com/2" in result.injected_text

    @pytest.mark.asyncio
    async def test_failed_rewrite_falls_back_to_raw_query(self, helper_config, fake_llm, fake_search):
        fake_llm.do_chat.side_effect = RuntimeError("provider down")
        strategy = WebSearchStrategy(helper_config, llm_client=fake_llm, search_client=fake_search)

        await strategy.do_enrich(_ctx("latest rupiah rate", web_search=True))
        fake_search.do_search.assert_awaited_once_with("latest rupiah rate", count=5)

    @pytest.mark.asyncio
    async def test_no_results_yields_none(self, helper_config, fake_llm, fake_search):
        fake_search.do_search.return_value = []
        strategy = WebSearchStrategy(helper_config, llm_client=fake_llm, search_client=fake_search)
        assert await strategy.do_enrich(_ctx("q", web_search=True)) is None

    @pytest.mark.asyncio
    async def test_search_provider_failure_raises_enrichment_error(self, helper_config, fake_llm, fake_search):
        fake_search.do_search.side_effect = httpx.ConnectError("search offline")
        strategy = WebSearchStrategy(helper_config, llm_client=fake_llm, search_client=fake_search)

        with pytest.raises(EnrichmentError, match="rewritten keyword"):
            await strategy.do_enrich(_ctx("q", web_search=True))

    def test_needs_flag_and_client(self, helper_config, fake_llm, fake_search):
        assert not WebSearchStrategy(helper_config, fake_llm, fake_search).is_applicable(_ctx("q", web_search=False))
        assert not WebSearchStrategy(helper_config, fake_llm, None).is_applicable(_ctx("q", web_search=True))


class _StaticStrategy(EnrichmentStrategyInterface):
    def __init__(self, helper_config, kind, result=None, error=None, applicable=True, falls_through=False):
        super().__init__(helper_config=helper_config)
        self._kind = kind
        self._result = result
        self._error = error
        self._applicable = applicable
        self._falls_through = falls_through
        self.calls = 0

    def get_kind(self):
        return self._kind

    def falls_through(self):
        return self._falls_through

    def is_applicable(self, ctx):
        return self._applicable

    async def do_enrich(self, ctx):
        self.calls += 1
        if self._error:
            raise self._error
        return self._result


class TestEnrichmentPipeline:
    @pytest.mark.asyncio
    async def test_url_preempts_knowledge_and_search(self, helper_config, fake_embed, fake_llm, fake_search):
        transport, _ = _page_transport()
        store = await _store_with_chunk(helper_config, [1.0, 0.0, 0.0])
        pipeline = EnrichmentPipeline(helper_config, [
            UrlScrapeStrategy(helper_config, transport=transport),
            KnowledgeRetrievalStrategy(helper_config, embed_client=fake_embed, store_client=store),
            WebSearchStrategy(helper_config, llm_client=fake_llm, search_client=fake_search),
        ])

        result = await pipeline.do_select(_ctx("summarise https://news.example.com/solar", web_search=True))

        assert result.kind == EnrichmentKind.SCRAPE
        fake_search.do_search.assert_not_awaited()
        fake_llm.do_chat.assert_not_awaited()
        fake_embed.do_embed_query.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_scrape_does_not_fall_back(self, helper_config, fake_embed, fake_llm, fake_search):
        transport, _ = _page_transport(status=500)
        store = await _store_with_chunk(helper_config, [1.0, 0.0, 0.0])
        pipeline = EnrichmentPipeline(helper_config, [
            UrlScrapeStrategy(helper_config, transport=transport),
            KnowledgeRetrievalStrategy(helper_config, embed_client=fake_embed, store_client=store),
            WebSearchStrategy(helper_config, llm_client=fake_llm, search_client=fake_search),
        ])

        assert await pipeline.do_select(_ctx("read https://example.com", web_search=True)) is None
        fake_search.do_search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_embedding_failure_degrades_to_search(self, helper_config, fake_embed, fake_llm, fake_search):
        fake_embed.do_embed_query.side_effect = EmbeddingError("Embedding request failed with status 500.")
        store = await _store_with_chunk(helper_config, [1.0, 0.0, 0.0])
        pipeline = EnrichmentPipeline(helper_config, [
            KnowledgeRetrievalStrategy(helper_config, embed_client=fake_embed, store_client=store),
            WebSearchStrategy(helper_config, llm_client=fake_llm, search_client=fake_search),
        ])

        result = await pipeline.do_select(_ctx("what is the refund window?", web_search=True))
        assert result.kind == EnrichmentKind.SEARCH

    @pytest.mark.asyncio
    async def test_embedding_failure_without_search_gives_no_enrichment(self, helper_config, fake_embed):
        fake_embed.do_embed_query.side_effect = EmbeddingError("Embedding request failed with status 500.")
        store = await _store_with_chunk(helper_config, [1.0, 0.0, 0.0])
        pipeline = EnrichmentPipeline(helper_config, [
            KnowledgeRetrievalStrategy(helper_config, embed_client=fake_embed, store_client=store),
        ])
        assert await pipeline.do_select(_ctx("what is the refund window?")) is None

    @pytest.mark.asyncio
    async def test_first_result_wins_and_later_strategies_do_not_run(self, helper_config):
        knowledge = _StaticStrategy(
            helper_config, EnrichmentKind.KNOWLEDGE,
            result=EnrichmentResult(kind=EnrichmentKind.KNOWLEDGE, injected_text="kb", source_descriptor="kb"),
            falls_through=True,
        )
        search = _StaticStrategy(helper_config, EnrichmentKind.SEARCH)
        pipeline = EnrichmentPipeline(helper_config, [knowledge, search])

        result = await pipeline.do_select(_ctx("q"))
        assert result.kind == EnrichmentKind.KNOWLEDGE
        assert search.calls == 0

    @pytest.mark.asyncio
    async def test_non_applicable_strategies_are_skipped(self, helper_config):
        skipped = _StaticStrategy(helper_config, EnrichmentKind.SCRAPE, applicable=False)
        search = _StaticStrategy(
            helper_config, EnrichmentKind.SEARCH,
            result=EnrichmentResult(kind=EnrichmentKind.SEARCH, injected_text="hits", source_descriptor="q"),
        )
        pipeline = EnrichmentPipeline(helper_config, [skipped, search])

        result = await pipeline.do_select(_ctx("q"))
        assert result.kind == EnrichmentKind.SEARCH
        assert skipped.calls == 0

    @pytest.mark.asyncio
    async def test_no_strategy_produces_anything(self, helper_config):
        pipeline = EnrichmentPipeline(helper_config, [
            _StaticStrategy(helper_config, EnrichmentKind.KNOWLEDGE, falls_through=True),
            _StaticStrategy(helper_config, EnrichmentKind.SEARCH),
        ])
        assert await pipeline.do_select(_ctx("q")) is None
