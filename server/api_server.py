"""FastAPI application entry point for the risk similarity bridge."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.store.StoreClientManager import StoreClientManager
from services.embedding_backfill.EmbeddingService import EmbeddingService
from services.similarity.SemanticRechecker import SemanticRechecker
from services.similarity.SimilarityService import SimilarityService
from server.routers.SimilarityRouter import router as similarity_router
from server.routers.EmbeddingRouter import router as embedding_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)

    store_client = StoreClientManager(helper_config=app.state.helper_config).get_client()
    embed_client = EmbedClientManager(helper_config=app.state.helper_config).get_client()
    llm_client = LLMClientManager(helper_config=app.state.helper_config).get_client()

    logging.info("Booting all clients...")
    for client in [store_client, embed_client, llm_client]:
        await client.boot()
    logging.info("All clients booted successfully.")

    app.state.store_client = store_client
    app.state.embed_client = embed_client
    app.state.llm_client = llm_client

    app.state.similarity_service = SimilarityService(
        helper_config=app.state.helper_config,
        store_client=store_client,
        embed_client=embed_client,
        rechecker=SemanticRechecker(helper_config=app.state.helper_config, llm_client=llm_client),
    )
    app.state.embedding_service = EmbeddingService(
        helper_config=app.state.helper_config,
        store_client=store_client,
        embed_client=embed_client,
    )

    await check_connections(store_client, embed_client, llm_client)

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down, closing all clients...")
    for client in [store_client, embed_client, llm_client]:
        await client.close()
    logging.info("All clients closed.")


app = FastAPI(
    title="risk_similarity_bridge",
    description=(
        "Duplicate detection for a risk register. Finds stored risks that describe the "
        "same threat as an existing or drafted risk via embeddings and an LLM re-check, "
        "and backfills missing embeddings for risks and controls."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.include_router(similarity_router)
app.include_router(embedding_router)


@app.get("/healthz", tags=["health"])
async def healthz() -> dict:
    return {"status": "ok", "version": app_version}


async def check_connections(
    store_client: StoreClientInterface,
    embed_client: EmbedClientInterface,
    llm_client: LLMClientInterface,
) -> None:
    """Check connectivity to all configured backends on startup.

    Embedding and LLM failures are non-fatal: lookups degrade to empty
    results and re-checks keep their vector score.

    Raises:
        Exception: If the record store is not reachable.
    """
    await store_client.do_healthcheck()

    for client in [embed_client, llm_client]:
        try:
            await client.do_healthcheck()
        except Exception as e:
            logging.warning(
                "%s client '%s' is not reachable: %s. Similarity results may be degraded.",
                client.get_client_type().upper(),
                client.get_engine_name(),
                e,
            )


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting risk_similarity_bridge API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
