"""FastAPI application entry point for chat_bridge."""

import math
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientInterface import ClientInterface
from shared.clients.auth.AuthClientInterface import AuthClientInterface
from shared.clients.auth.AuthClientManager import AuthClientManager
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.ratelimit.RateLimitClientInterface import RateLimitClientInterface
from shared.clients.ratelimit.RateLimitClientManager import RateLimitClientManager
from shared.clients.search.SearchClientInterface import SearchClientInterface
from shared.clients.search.SearchClientManager import SearchClientManager
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.clients.store.StoreClientManager import StoreClientManager
from shared.models.errors import ChatBridgeError, RateLimitedError
from services.chat.ChatService import ChatService
from services.chat.PromptBuilder import PromptBuilder
from services.chat.SessionService import SessionService
from services.enrichment.EnrichmentPipeline import EnrichmentPipeline
from services.enrichment.KnowledgeRetrievalStrategy import KnowledgeRetrievalStrategy
from services.enrichment.UrlScrapeStrategy import UrlScrapeStrategy
from services.enrichment.WebSearchStrategy import WebSearchStrategy
from services.knowledge.KnowledgeService import KnowledgeService
from server.middleware.edge_guard import edge_guard_middleware
from server.routers.ChatRouter import router as chat_router
from server.routers.HealthRouter import router as health_router
from server.routers.KnowledgeRouter import router as knowledge_router
from server.routers.SessionRouter import router as session_router
from server.routers.ShareRouter import router as share_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


def init_services(
    app: FastAPI,
    helper_config: HelperConfig,
    llm_client: LLMClientInterface,
    store_client: StoreClientInterface,
    auth_client: AuthClientInterface,
    rate_limiter: RateLimitClientInterface,
    embed_client: EmbedClientInterface | None = None,
    search_client: SearchClientInterface | None = None,
    scrape_transport: httpx.AsyncBaseTransport | None = None,
) -> None:
    """Wire the clients into the services and publish everything on app.state.

    Enrichment priority is fixed here: URL scrape, then knowledge retrieval,
    then web search.
    """
    app.state.helper_config = helper_config
    app.state.logging = helper_config.get_logger()
    app.state.llm_client = llm_client
    app.state.store_client = store_client
    app.state.auth_client = auth_client
    app.state.rate_limiter = rate_limiter
    app.state.embed_client = embed_client
    app.state.search_client = search_client

    enrichment_pipeline = EnrichmentPipeline(
        helper_config=helper_config,
        strategies=[
            UrlScrapeStrategy(helper_config=helper_config, transport=scrape_transport),
            KnowledgeRetrievalStrategy(helper_config=helper_config, embed_client=embed_client, store_client=store_client),
            WebSearchStrategy(helper_config=helper_config, llm_client=llm_client, search_client=search_client),
        ],
    )
    app.state.chat_service = ChatService(
        helper_config=helper_config,
        llm_client=llm_client,
        rate_limiter=rate_limiter,
        enrichment_pipeline=enrichment_pipeline,
        prompt_builder=PromptBuilder(helper_config),
    )
    app.state.session_service = SessionService(helper_config=helper_config, store_client=store_client)
    app.state.knowledge_service = KnowledgeService(
        helper_config=helper_config,
        embed_client=embed_client,
        store_client=store_client,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    helper_config = HelperConfig(logger=logging)

    llm_client = LLMClientManager(helper_config=helper_config).get_client()
    embed_client = EmbedClientManager(helper_config=helper_config).get_client()
    store_client = StoreClientManager(helper_config=helper_config).get_client()
    auth_client = AuthClientManager(helper_config=helper_config).get_client()
    rate_limiter = RateLimitClientManager(helper_config=helper_config).get_client()
    search_client = SearchClientManager(helper_config=helper_config).get_client()

    clients: list[ClientInterface] = [
        client
        for client in [llm_client, embed_client, store_client, auth_client, rate_limiter, search_client]
        if client is not None
    ]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.")

    init_services(
        app,
        helper_config=helper_config,
        llm_client=llm_client,
        store_client=store_client,
        auth_client=auth_client,
        rate_limiter=rate_limiter,
        embed_client=embed_client,
        search_client=search_client,
    )

    await check_connections(clients)

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down, closing all clients...")
    for client in clients:
        await client.close()
    logging.info("All clients closed.")


app = FastAPI(
    title="chat_bridge",
    description=(
        "Retrieval-augmented chat gateway. Authenticates and rate-limits chat requests, "
        "enriches the prompt with at most one context source (scraped URL, knowledge base "
        "or web search), streams the completion and persists the conversation. "
        "Admins feed the knowledge base via POST /knowledge."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(edge_guard_middleware)

app.include_router(health_router)
app.include_router(chat_router)
app.include_router(knowledge_router)
app.include_router(session_router)
app.include_router(share_router)


##########################################
############ ERROR HANDLING ##############
##########################################


@app.exception_handler(ChatBridgeError)
async def chat_bridge_error_handler(request: Request, exc: ChatBridgeError) -> JSONResponse:
    headers = {}
    if isinstance(exc, RateLimitedError):
        headers["Retry-After"] = str(max(1, math.ceil(exc.retry_after)))
    if exc.status_code >= 500:
        logging.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logging.debug("%s %s rejected (%d): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message}, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid request: {location} {first.get('msg', '')}".strip()
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logging.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


async def check_connections(clients: list[ClientInterface]) -> None:
    """Check connectivity to all configured backends on startup.

    The completion provider, the store and the identity provider are required;
    every other backend only degrades a feature when it is down.

    Raises:
        Exception: If a required backend is not reachable.
    """
    required_types = ("llm", "store", "auth")
    for client in clients:
        try:
            result: httpx.Response = await client.do_healthcheck()
            healthy = result.is_success
            detail = f"status {result.status_code}"
        except httpx.HTTPError as e:
            healthy = False
            detail = str(e)

        if healthy:
            continue
        if client.get_client_type() in required_types:
            raise Exception(
                f"{client.get_client_type().upper()} client '{client.__class__.__name__}' is not reachable ({detail})."
            )
        logging.warning(
            "%s client '%s' is not reachable (%s). Related features may fail.",
            client.get_client_type().upper(),
            client.__class__.__name__,
            detail,
            color="yellow",
        )


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting chat_bridge API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
