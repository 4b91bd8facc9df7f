from __future__ import annotations

from typing import Optional

from fastapi import Depends

from mynute import __version__
from mynute.api.dependencies import get_optional_subject
from mynute.config import get_settings
from mynute.security.subject import Subject


def health(subject: Optional[Subject] = Depends(get_optional_subject)) -> dict:
    settings = get_settings()
    return {
        "ok": True,
        "service": "mynute",
        "version": __version__,
        "environment": settings.ENVIRONMENT,
        "schema_mode": settings.SCHEMA_MODE,
        "subject_id": subject.id if subject else None,
    }
