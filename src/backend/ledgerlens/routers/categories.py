"""
Categories API router: registry listing, suggestions and learned mappings.
"""

from fastapi import APIRouter, HTTPException, Request
from typing import List
import logging

from ledgerlens.categories.registry import CATEGORY_REGISTRY
from ledgerlens.models.api import LearnCategoryRequest, SuggestCategoryRequest, SuggestCategoryResponse
from ledgerlens.models.category import CategoryInfo, VendorCategoryMapping

router = APIRouter(prefix="/categories", tags=["categories"])
logger = logging.getLogger(__name__)


@router.get("", response_model=List[CategoryInfo])
async def list_categories():
    """List registry categories in display order."""
    ordered = sorted(CATEGORY_REGISTRY, key=lambda c: c.sort_order)
    return [
        CategoryInfo(
            slug=c.slug,
            name=c.name,
            icon=c.icon,
            color=c.color,
            sort_order=c.sort_order,
            subcategories=[s.name for s in c.subcategories],
        )
        for c in ordered
    ]


@router.post("/suggest", response_model=SuggestCategoryResponse)
async def suggest_categories(body: SuggestCategoryRequest, request: Request):
    """Ranked category suggestions for a vendor; a learned mapping comes first."""
    categorizer = request.app.state.categorizer
    suggestions = categorizer.suggest_categories(
        body.vendor,
        limit=body.limit,
        amount=body.amount,
        transaction_type=body.transaction_type,
    )
    return SuggestCategoryResponse(vendor=body.vendor, suggestions=suggestions)


@router.post("/learn")
async def learn_category(body: LearnCategoryRequest, request: Request):
    """Record the user's category choice for a vendor."""
    categorizer = request.app.state.categorizer

    try:
        await categorizer.learn_category(body.vendor, body.category_id, body.amount)
    except Exception as e:
        logger.error("Failed to learn category", extra={
            "vendor": body.vendor,
            "error": str(e)
        }, exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to learn category: {str(e)}"
        )

    return {
        "message": "Mapping learned",
        "vendor": body.vendor,
        "category_id": body.category_id,
        "mapping_count": categorizer.learned_count()
    }


@router.get("/mappings", response_model=List[VendorCategoryMapping])
async def list_mappings(request: Request):
    return await request.app.state.learning.get_all_mappings()


@router.delete("/mappings/{mapping_id}")
async def delete_mapping(mapping_id: str, request: Request):
    deleted = await request.app.state.learning.delete_mapping(mapping_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Mapping not found")
    return {"message": "Mapping deleted", "id": mapping_id}


@router.delete("/mappings")
async def clear_mappings(request: Request):
    await request.app.state.learning.clear_all()
    return {"message": "All mappings cleared"}
