"""
Itinerary item endpoints addressed by item id.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.application.itinerary_service import ItineraryService, get_itinerary_service
from src.auth.dependencies import get_current_user
from src.auth.models import UserModel
from src.domain.schemas import ItineraryItemUpdateRequest
from src.infrastructure.database import get_db


router = APIRouter(prefix="/itinerary", tags=["itinerary"])


@router.get(
    "/{item_id}",
    summary="Get itinerary item",
)
async def get_itinerary_item(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: ItineraryService = Depends(get_itinerary_service),
):
    return {"itineraryItem": await service.get_item(db, user, item_id)}


@router.put(
    "/{item_id}",
    summary="Update itinerary item",
    description="Partial update. The item's trip must belong to the caller unless the caller is an admin."
)
async def update_itinerary_item(
    item_id: int,
    request: ItineraryItemUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: ItineraryService = Depends(get_itinerary_service),
):
    item = await service.update_item(db, user, item_id, request.model_dump(exclude_unset=True))
    return {"message": "Itinerary item updated successfully", "itineraryItem": item}


@router.delete(
    "/{item_id}",
    summary="Delete itinerary item",
)
async def delete_itinerary_item(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: ItineraryService = Depends(get_itinerary_service),
):
    await service.delete_item(db, user, item_id)
    return {"message": "Itinerary item deleted successfully"}
