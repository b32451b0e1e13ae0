"""
Tow provider reference data routes
"""
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.deps import Operator, require_operator
from app.services.providers import TowProviderDirectory, get_provider_directory

router = APIRouter()


class TowProviderResponse(BaseModel):
    name: str
    notification_address: str


@router.get("", response_model=List[TowProviderResponse])
async def list_tow_providers(
    operator: Operator = Depends(require_operator),
    directory: TowProviderDirectory = Depends(get_provider_directory),
):
    """Tow providers in the order they were configured."""
    return [TowProviderResponse(**p.to_dict()) for p in directory.list_providers()]
