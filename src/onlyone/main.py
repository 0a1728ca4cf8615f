import asyncio
import logging
from contextlib import asynccontextmanager

from elasticsearch import AsyncElasticsearch
from fastapi import Depends, FastAPI

from .config import get_settings
from .lib.elasticsearch import ensure_indices
from .lib.embeddings import EmbeddingProvider
from .routers import days, health, posts, stats
from .security import verify_api_key

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    es = AsyncElasticsearch(settings.elasticsearch_url, api_key=settings.elasticsearch_api_key)
    await ensure_indices(es, settings.posts_index, settings.matches_index)
    logger.info(
        "Using Elasticsearch at %s (indices %s, %s); similarity strategy %s",
        settings.elasticsearch_url,
        settings.posts_index,
        settings.matches_index,
        settings.similarity_strategy,
    )

    embedder = EmbeddingProvider(settings.embedding_model)
    app.state.es = es
    app.state.embedder = embedder

    # Loading the model takes seconds; requests arriving meanwhile fall back
    # to lexical matching until it is ready.
    warmup = asyncio.create_task(embedder.warmup()) if settings.warmup_embeddings else None
    try:
        yield
    finally:
        if warmup is not None and not warmup.done():
            warmup.cancel()
        await es.close()


app = FastAPI(
    title="OnlyOne API",
    description="An API server for posting daily actions and scoring how unique they are",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(posts.router)
app.include_router(days.router)
app.include_router(stats.router)


@app.get("/", dependencies=[Depends(verify_api_key)])
async def root():
    return {"message": "OnlyOne API"}
