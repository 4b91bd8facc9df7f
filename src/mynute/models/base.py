from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Placeholder schema for tenant tables; rewritten per session through
# `schema_translate_map` (see mynute.database.scoped_engine).
TENANT_SCHEMA = "tenant"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
