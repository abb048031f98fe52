from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pathlib import Path
from typing import Dict, List, Optional
import asyncio
import logging

from api.config import settings
from api.graph_store import GraphStore
from api.logging_config import configure_logging
from api.vector_store import VectorStore
from scrapers.aggregator import load_statistics
from pydantic import BaseModel

configure_logging(settings)

logger = logging.getLogger(__name__)


async def cleanup_resources(app: FastAPI):
    """Close the stores on shutdown."""
    logger.info("Cleaning up resources...")

    for name in ('graph_store', 'vector_store'):
        store = getattr(app.state, name, None)
        if store is None:
            continue
        try:
            await asyncio.wait_for(store.close(), timeout=2.0)
        except asyncio.TimeoutError:
            logger.warning(f"Closing {name} timed out")
        except Exception as e:
            logger.warning(f"Error closing {name}: {e}")

    logger.info("Resource cleanup complete")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Opens the stores on startup and closes them on shutdown.
    """
    # Startup
    logger.info("=" * 60)
    logger.info("Property Crawler API Starting Up")
    logger.info("=" * 60)
    logger.info(f"Log file: {settings.log_file}")
    logger.info(f"Graph store: {settings.database_url}")
    logger.info(f"Vector store: {settings.vector_database_url}")

    app.state.graph_store = GraphStore.from_settings(settings)
    app.state.vector_store = VectorStore.from_settings(settings)
    try:
        await app.state.graph_store.connect()
    except Exception as e:
        logger.error(f"Graph store unavailable, property queries will return no results: {e}")
    try:
        await app.state.vector_store.initialize()
        logger.info(f"Vector store holds {await app.state.vector_store.count()} documents")
    except Exception as e:
        logger.error(f"Vector store unavailable, search will return no results: {e}")
    logger.info("API ready to accept requests")

    yield  # Application runs here

    # Shutdown
    logger.info("=" * 60)
    logger.info("Property Crawler API Shutting Down")
    logger.info("=" * 60)

    try:
        await asyncio.wait_for(cleanup_resources(app), timeout=5.0)
    except asyncio.TimeoutError:
        logger.warning("Shutdown cleanup timed out, forcing exit")
    except Exception as e:
        logger.error(f"Error during shutdown cleanup: {e}")

    logger.info("Shutdown complete")


app = FastAPI(
    title="Property Crawler API",
    version="1.0.0",
    lifespan=lifespan
)

# Note: allow_credentials must be False when allow_origins is ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependencies - overridden in tests
def get_graph_store(request: Request) -> GraphStore:
    return request.app.state.graph_store


def get_vector_store(request: Request) -> VectorStore:
    return request.app.state.vector_store


def get_results_dir() -> Path:
    return settings.results_dir


@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    """Return empty response for favicon requests"""
    return Response(status_code=204)


# Pydantic models for API responses
class PriceObservationResponse(BaseModel):
    date: str
    amount: int


class PropertyResponse(BaseModel):
    url: str
    title: str
    address: Optional[str] = None
    city: Optional[str] = None
    neighborhood: Optional[str] = None
    street: Optional[str] = None
    price: Optional[int] = None
    rooms: Optional[int] = None
    area_sqm: Optional[int] = None
    extras: Optional[str] = None
    garage: bool = False
    description: Optional[str] = None
    energy_rating: Optional[str] = None
    features: List[str] = []
    price_history: List[PriceObservationResponse] = []
    last_updated: Optional[str] = None

    class Config:
        from_attributes = True


class SearchMatchResponse(BaseModel):
    id: str
    document: str
    metadata: Dict
    distance: float


class StatisticsResponse(BaseModel):
    total: int
    with_price: int
    average_price: Optional[int] = None
    by_city: Dict[str, int]


# API Endpoints

@app.get("/")
async def root():
    return {"message": "Property Crawler API", "version": "1.0.0"}


@app.get("/api/properties", response_model=List[PropertyResponse])
async def get_properties(
    city: Optional[str] = None,
    neighborhood: Optional[str] = None,
    max_price: Optional[int] = Query(None, ge=0),
    min_rooms: Optional[int] = Query(None, ge=0),
    limit: int = Query(20, ge=1, le=200),
    store: GraphStore = Depends(get_graph_store),
):
    """Stored properties matching the filters, cheapest first"""
    return await store.search_properties(
        city=city,
        neighborhood=neighborhood,
        max_price=max_price,
        min_rooms=min_rooms,
        limit=limit,
    )


@app.get("/api/search", response_model=List[SearchMatchResponse])
async def search_properties(
    q: str = Query(..., min_length=1, description="Free-text description of the property wanted"),
    limit: int = Query(5, ge=1, le=50),
    store: VectorStore = Depends(get_vector_store),
):
    """Properties closest to a free-text query"""
    return await store.semantic_search(q, limit=limit)


@app.get("/api/statistics", response_model=StatisticsResponse)
async def get_statistics(results_dir: Path = Depends(get_results_dir)):
    """Statistics written by the last crawl"""
    statistics = load_statistics(results_dir)
    if statistics is None:
        raise HTTPException(status_code=404, detail="No crawl statistics available yet")
    return statistics


def run():
    """Serve the API with uvicorn (`property-api` console script)."""
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_config=None)
