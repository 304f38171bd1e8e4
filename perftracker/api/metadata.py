"""
FastAPI router for filter metadata.

Key Endpoints:
- GET /performance-tracker/metadata: distinct values per filter dimension
  and the configured teams, cached for METADATA_CACHE_TTL_SECONDS
"""

import logging

from fastapi import APIRouter, HTTPException

from perftracker.core.dependencies import SettingsDep, TeamStoreDep, WarehouseDep
from perftracker.core.exceptions import DataSourceError
from perftracker.models.schemas import MetadataResponse
from perftracker.services.metadata import get_filter_metadata

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    '/metadata',
    response_model=MetadataResponse,
    summary="Get Filter Metadata",
)
async def get_metadata(
    warehouse: WarehouseDep,
    run_query: TeamStoreDep,
    settings: SettingsDep,
) -> MetadataResponse:
    """
    Return dropdown options for every filter dimension.

    Raises:
        HTTPException 502: If the warehouse query fails.
        HTTPException 500: On unexpected errors.
    """
    try:
        data, cached, age = await get_filter_metadata(
            warehouse,
            run_query,
            ttl_seconds=settings.metadata_cache_ttl_seconds,
            value_limit=settings.metadata_value_limit,
        )
        return MetadataResponse(status="ok", data=data, cached=cached, cache_age_seconds=age)

    except DataSourceError as e:
        logger.error(f"Metadata data source failure: {e}")
        raise HTTPException(
            status_code=502,
            detail=f"Data source '{e.source}' failed: {e.message}",
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching metadata: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch metadata: {str(e)}",
        )
