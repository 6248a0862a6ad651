"""
Estimation Router

Handles the /estimate endpoints: single and batch demand estimates,
related keywords and keyword suggestions.
"""

import logging
import time
from functools import lru_cache
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ..errors import ConfigurationError, ValidationError
from ..schemas.estimate_schema import (
    BatchEstimateRequest,
    EstimateRequest,
    EstimationResult,
    KeywordListResult,
)
from ..services.estimation_engine import EstimationEngine
from ..settings import load_settings

logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/estimate",
    tags=["Estimation"],
    responses={
        422: {"description": "Invalid prompt"},
        500: {"description": "Configuration or internal error"},
    }
)


@lru_cache(maxsize=1)
def _build_engine() -> EstimationEngine:
    return EstimationEngine(load_settings())


def get_engine() -> EstimationEngine:
    """Shared engine built from the configured settings."""
    try:
        return _build_engine()
    except ConfigurationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Configuration error: {e}",
        )


def _truncate(result: KeywordListResult, top_n: int) -> KeywordListResult:
    if len(result.keywords) <= top_n:
        return result
    return result.model_copy(update={"keywords": result.keywords[:top_n]})


@router.post(
    "",
    response_model=EstimationResult,
    status_code=status.HTTP_200_OK,
    summary="Estimate search demand for a prompt",
    response_description="Weighted per-category estimate, confidence and variant data",
)
def estimate(
    request: EstimateRequest,
    engine: EstimationEngine = Depends(get_engine),
) -> EstimationResult:
    start_time = time.perf_counter()
    try:
        result = engine.estimate(request.prompt, request.region)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    duration = (time.perf_counter() - start_time) * 1000
    logger.info("POST /estimate completed in %.0fms", duration)
    return result


@router.post(
    "/batch",
    response_model=List[EstimationResult],
    summary="Estimate search demand for several prompts",
    response_description="One result per prompt, in request order; failed prompts carry an error",
)
def estimate_batch(
    request: BatchEstimateRequest,
    engine: EstimationEngine = Depends(get_engine),
) -> List[EstimationResult]:
    try:
        return engine.estimate_batch(request.prompts, request.region)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post(
    "/related",
    response_model=KeywordListResult,
    summary="Related keywords by descending search volume",
)
def related(
    request: EstimateRequest,
    engine: EstimationEngine = Depends(get_engine),
) -> KeywordListResult:
    try:
        result = engine.related_keywords(request.prompt, request.region)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _truncate(result, engine.settings.top_n)


@router.post(
    "/suggestions",
    response_model=KeywordListResult,
    summary="Keyword suggestions by descending search volume",
)
def suggestions(
    request: EstimateRequest,
    engine: EstimationEngine = Depends(get_engine),
) -> KeywordListResult:
    try:
        result = engine.keyword_suggestions(request.prompt, request.region)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _truncate(result, engine.settings.top_n)


@router.get(
    "/health",
    summary="Health Check",
    description="Check if the estimation service is running",
    response_description="Health status"
)
async def health_check():
    """Simple health check endpoint."""
    return {"status": "healthy", "service": "prompt-demand-estimation"}
