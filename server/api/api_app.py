"""FastAPI application entry point for the asset index API."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import os
from server.api.routers.IndexRouter import index_router
from server.api.routers.SearchRouter import search_router
from server.api.routers.WebhookRouter import webhook_router
from services.asset_index.IndexingService import IndexingService
from services.asset_index.IndexJobQueue import IndexJobWorker
from services.asset_index.RetrievalService import RetrievalService
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.store.StoreClientManager import StoreClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown."""
    app.state.logging = logging
    app.state.config = HelperConfig(logger=logging)

    # Initialise clients
    rag_client = RAGClientManager(helper_config=app.state.config).get_client()
    embed_client = EmbedClientManager(helper_config=app.state.config).get_client()
    store_client = StoreClientManager(helper_config=app.state.config).get_client()
    await embed_client.boot()
    await store_client.boot()

    # Health checks. A failing backend is logged, the API still starts.
    for client in (embed_client, store_client):
        try:
            await client.do_healthcheck()
        except Exception as e:
            logging.error(f"Healthcheck failed for {client.get_client_type()} client {client.get_engine_name()}: {e}")

    # the index is optional, search degrades to empty results without it
    if rag_client is not None:
        await rag_client.boot()
        try:
            await rag_client.do_healthcheck()
        except Exception as e:
            logging.error(f"RAG client {rag_client.get_engine_name()} is not reachable: {e}. Index disabled.")

    # Wire up services
    indexing_service = IndexingService(helper_config=app.state.config, rag_client=rag_client, embed_client=embed_client)
    try:
        if await indexing_service.do_prepare_index():
            logging.info("Created vector collection.")
    except Exception as e:
        logging.error(f"Preparing the vector collection failed: {e}")

    app.state.retrieval_service = RetrievalService(helper_config=app.state.config, rag_client=rag_client, embed_client=embed_client)
    app.state.index_worker = IndexJobWorker(
        helper_config=app.state.config,
        indexing_service=indexing_service,
        store_client=store_client,
    )
    app.state.indexing_service = indexing_service

    # pending jobs do not survive a restart, the recovery scan re-queues them
    if app.state.config.get_bool_val("INDEX_RECOVER_ON_BOOT", default=True) and indexing_service.is_available():
        try:
            await app.state.index_worker.process_all_unindexed()
        except Exception as e:
            logging.error(f"Recovery scan at boot failed: {e}")
    await app.state.index_worker.start()

    logging.info("Asset index API ready.", color="green")
    yield

    # Shutdown
    await app.state.index_worker.stop()
    await embed_client.close()
    await store_client.close()
    if rag_client is not None:
        await rag_client.close()
    logging.info("Asset index API shut down.")


app = FastAPI(
    title="Asset RAG Index",
    description="Chunking, indexing and owner-scoped semantic search for platform assets.",
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

app.include_router(webhook_router)
app.include_router(search_router)
app.include_router(index_router)


@app.get("/healthz", tags=["Health"])
async def healthz(request: Request) -> dict:
    return {"status": "ok", "index_available": request.app.state.retrieval_service.is_available()}


# Server Start
if __name__ == "__main__":
    # start server
    import uvicorn
    logging.info(f"Starting asset index API v{app_version} from root dir: {os.getenv('ROOT_DIR', os.getcwd())} on port 8000...")
    uvicorn.run(app, host="0.0.0.0", port=8000)
