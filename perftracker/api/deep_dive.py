"""
FastAPI router for the Performance Tracker deep-dive endpoint.

Key Endpoints:
- POST /performance-tracker/deep-dive: compare two periods for one
  perspective and return tiered, annotated records with a summary

Error mapping:
- InputValidationError -> 400, detail {"field", "message"}
- DataSourceError -> 502
- Request body schema errors -> 422 (FastAPI)
- Anything else -> 500 (logged with traceback)
"""

import logging

from fastapi import APIRouter, HTTPException

from perftracker.core.dependencies import TeamStoreDep, WarehouseDep
from perftracker.core.exceptions import DataSourceError, InputValidationError
from perftracker.models.schemas import DeepDiveRequest, DeepDiveResponse, ErrorResponse
from perftracker.services.deep_dive import run_deep_dive

logger = logging.getLogger(__name__)

router = APIRouter(
    responses={
        400: {"description": "Invalid request parameter", "model": ErrorResponse},
        502: {"description": "Warehouse or team store failure"},
        500: {"description": "Internal server error during processing"},
    },
)


@router.post(
    '/deep-dive',
    response_model=DeepDiveResponse,
    summary="Run Deep Dive",
    description="""
    Compare two periods for one perspective (pid, mid, zone, product, pic
    or team).

    Records are ranked by period-2 revenue, assigned A/B/C tiers from their
    cumulative revenue share (80% / 95%), classified as new, lost or
    existing, and annotated with transition advisories and anomaly
    severities. `tierFilter` narrows the returned records after tiering.
    """,
)
async def deep_dive(
    body: DeepDiveRequest,
    warehouse: WarehouseDep,
    run_query: TeamStoreDep,
) -> DeepDiveResponse:
    try:
        logger.info(
            f"Deep dive request: perspective={body.perspective}, "
            f"parent={body.parentPerspective}:{body.parentId}, tierFilter={body.tierFilter}"
        )
        return await run_deep_dive(body, warehouse, run_query)

    except InputValidationError as e:
        logger.info(f"Rejected deep dive request: {e}")
        raise HTTPException(status_code=400, detail=e.to_dict())
    except DataSourceError as e:
        logger.error(f"Deep dive data source failure: {e}")
        raise HTTPException(
            status_code=502,
            detail=f"Data source '{e.source}' failed: {e.message}",
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error running deep dive: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to run deep dive: {str(e)}",
        )
