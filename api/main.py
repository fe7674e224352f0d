"""
Customer Segmentation API
=========================

FastAPI endpoints for running and reading customer segmentation.

Usage:
    uvicorn api.main:app --reload

Endpoints:
    POST /segment-customers - Run segmentation and replace the stored one
    GET /segments - Stored segment summaries
    GET /segments/{segment_id}/customers - Customers of one segment
    POST /predict-segment - Nearest stored segment for new metrics
    GET /health - Health check
"""

from functools import lru_cache
from typing import Optional, List

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from loguru import logger

from retail_segmentation import __version__
from retail_segmentation.config import Settings, load_settings, setup_logging
from retail_segmentation.customer_segmentation import CustomerAggregate, SegmentationOrchestrator
from retail_segmentation.exceptions import (
    InsufficientDataError,
    SegmentationError,
    SegmentationNotFoundError,
)
from retail_segmentation.storage import SegmentStore


@lru_cache()
def get_settings() -> Settings:
    return load_settings()


@lru_cache()
def _default_store() -> SegmentStore:
    settings = get_settings()
    store = SegmentStore(settings.database_url, echo=settings.database_echo)
    store.create_schema()
    return store


def get_store() -> SegmentStore:
    """Store dependency; overridden in tests."""
    return _default_store()


app_settings = get_settings()
setup_logging(app_settings.log_level)

# Initialize FastAPI
app = FastAPI(
    title="Customer Segmentation API",
    description="K-Means customer segmentation for retail",
    version=__version__
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response models
class SegmentRequest(BaseModel):
    num_clusters: int = Field(4, ge=1)
    random_seed: Optional[int] = None


class SegmentSummary(BaseModel):
    segment_id: int
    segment_name: str
    customer_count: int
    centroid: List[float]


class SegmentResponse(BaseModel):
    message: str
    segments: List[SegmentSummary]
    iterations: int
    converged: bool


class PredictRequest(BaseModel):
    total_value: float = Field(..., ge=0)
    purchase_count: int = Field(..., ge=0)
    days_since_last_purchase: float = Field(..., ge=0)


class HealthResponse(BaseModel):
    status: str
    version: str


# Health check
@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=__version__)


@app.post("/segment-customers", response_model=SegmentResponse)
def segment_customers(
    request: SegmentRequest = SegmentRequest(),
    store: SegmentStore = Depends(get_store),
    settings: Settings = Depends(get_settings)
):
    """
    Segment all eligible customers and replace the stored segmentation.

    Returns 400 when there are fewer eligible customers than clusters.
    """
    orchestrator = SegmentationOrchestrator.from_settings(
        store, settings, random_state=request.random_seed
    )

    try:
        result = orchestrator.run(num_clusters=request.num_clusters)

    except InsufficientDataError as e:
        logger.warning(f"Segmentation rejected: {e.message}")
        raise HTTPException(
            status_code=400,
            detail={
                'error': 'insufficient_data',
                'message': e.message,
                'required': e.required,
                'available': e.available,
            }
        )

    except SegmentationError as e:
        logger.error(f"Segmentation error: {e.message}")
        raise HTTPException(status_code=500, detail={'error': type(e).__name__, 'message': e.message})

    except Exception as e:
        logger.exception(f"Segmentation failed: {e}")
        raise HTTPException(status_code=500, detail={'error': 'segmentation_failed', 'message': str(e)})

    return SegmentResponse(
        message="Customer segmentation completed",
        segments=[SegmentSummary(**s) for s in result.to_dict()['segments']],
        iterations=result.iterations,
        converged=result.converged
    )


@app.get("/segments")
def list_segments(store: SegmentStore = Depends(get_store)):
    """Summaries of the stored segmentation."""
    try:
        return {"segments": store.get_segment_summaries()}
    except Exception as e:
        logger.error(f"Segment listing error: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/segments/{segment_id}/customers")
def segment_customers_list(segment_id: int, store: SegmentStore = Depends(get_store)):
    """Customers assigned to one stored segment."""
    try:
        return {"customers": store.get_segment_customers(segment_id)}
    except Exception as e:
        logger.error(f"Segment customers error: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/predict-segment")
def predict_segment(
    request: PredictRequest,
    store: SegmentStore = Depends(get_store),
    settings: Settings = Depends(get_settings)
):
    """Nearest stored segment for a customer described by raw metrics."""
    orchestrator = SegmentationOrchestrator.from_settings(store, settings)
    aggregate = CustomerAggregate.from_metrics(
        customer_id='prediction',
        total_value=request.total_value,
        purchase_count=request.purchase_count,
        days_since_last_purchase=request.days_since_last_purchase
    )

    try:
        return orchestrator.predict_segment(aggregate)
    except SegmentationNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
