"""Settings router - admin only, enforced through authorize('settings', ...)"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...permissions import Resource, authorize
from ...responses import api_error, envelope
from .service import SettingsService

router = APIRouter(prefix="/settings", tags=["Settings"])


class SettingUpdate(BaseModel):
    value: Any = None


def get_settings_service(db: Session = Depends(get_db)) -> SettingsService:
    return SettingsService(db)


@router.get("/{key}")
async def get_setting(
    key: str,
    _: None = Depends(authorize(Resource.SETTINGS, "view")),
    service: SettingsService = Depends(get_settings_service),
):
    return envelope(service.get_setting(key))


@router.put("/{key}")
async def update_setting(
    key: str,
    data: SettingUpdate,
    _: None = Depends(authorize(Resource.SETTINGS, "update")),
    current_user: User = Depends(get_current_user),
    service: SettingsService = Depends(get_settings_service),
):
    # An explicit null is a valid value; only an absent field is rejected
    if "value" not in data.model_fields_set:
        raise api_error(400, "Value is required")
    return envelope(service.upsert_setting(key, data.value, current_user), "Setting updated successfully")
