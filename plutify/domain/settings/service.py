"""Settings service - organization-wide key/value settings"""

import logging
from typing import Any

from sqlalchemy.orm import Session

from ...models import Setting, User
from ...responses import api_error

logger = logging.getLogger(__name__)


def setting_to_dict(setting: Setting) -> dict:
    return {
        "key": setting.key,
        "value": setting.value,
        "updatedBy": setting.updated_by,
        "updatedAt": setting.updated_at,
    }


class SettingsService:
    def __init__(self, db: Session):
        self.db = db

    def _find(self, key: str):
        return self.db.query(Setting).filter(Setting.key == key).first()

    def get_setting(self, key: str) -> dict:
        setting = self._find(key)
        if not setting:
            raise api_error(404, "Setting not found")
        return setting_to_dict(setting)

    def upsert_setting(self, key: str, value: Any, user: User) -> dict:
        setting = self._find(key)
        if setting is None:
            setting = Setting(key=key)
            self.db.add(setting)
        setting.value = value
        setting.updated_by = user.id
        self.db.commit()
        self.db.refresh(setting)
        logger.info(f"⚙️ Setting '{key}' updated by {user.email}")
        return setting_to_dict(setting)
