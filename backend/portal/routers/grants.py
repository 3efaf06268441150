"""Grant catalog and reference data router (grants, FAQs, resources)."""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status

from portal import catalog
from portal.models.grant import FAQItem, Grant, GrantListResponse, ResourceItem

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["grants"])


@router.get("/grants", response_model=GrantListResponse)
async def list_grants(
    search: Optional[str] = Query(None, max_length=200),
    category: Optional[str] = Query(None, max_length=100),
    sort_by: str = Query("deadline", alias="sortBy"),
):
    """List grants filtered by text/category and sorted by deadline, amount or name."""
    try:
        grants = catalog.search_catalog(search, category, sort_by)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)
        ) from e
    return GrantListResponse(
        grants=grants, total=len(grants), categories=catalog.list_categories()
    )


@router.get("/grants/categories", response_model=List[str])
async def list_grant_categories():
    return catalog.list_categories()


@router.get("/grants/{grant_id}", response_model=Grant)
async def get_grant(grant_id: str):
    if grant := catalog.get_grant(grant_id):
        return grant
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Grant not found")


@router.get("/reference/faqs", response_model=List[FAQItem])
async def list_faqs():
    return catalog.FAQS


@router.get("/reference/resources", response_model=List[ResourceItem])
async def list_resources():
    return catalog.RESOURCES
