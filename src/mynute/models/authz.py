"""
Persisted authorization configuration (public namespace).

Rows here are read at startup (and on reload) and turned into the immutable
in-memory registries under `mynute.authz`.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

from mynute.models.base import Base, utcnow


class ResourceRecord(Base):
    __tablename__ = "resources"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(64), nullable=False, unique=True)
    storage_table = Column(String(128), nullable=False)
    # [{"storage_key": ..., "request_key": ..., "request_location": ...}, ...]
    references = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list)
    description = Column(Text, nullable=True)


class EndpointRecord(Base):
    __tablename__ = "endpoints"
    __table_args__ = (UniqueConstraint("method", "path", name="uq_endpoints_method_path"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    controller_name = Column(String(128), nullable=False)
    method = Column(String(10), nullable=False)
    path = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    resource = Column(String(64), nullable=True)
    needs_tenant = Column(Boolean, nullable=False, default=False)
    deny_if_unauthorized = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class PolicyRuleRecord(Base):
    __tablename__ = "policy_rules"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    endpoint_id = Column(
        String(36), ForeignKey("endpoints.id", ondelete="CASCADE"), nullable=False, index=True
    )
    effect = Column(String(10), nullable=False, default="Allow")
    # Serialized condition tree, see mynute.authz.conditions.dump_condition
    conditions = Column(Text, nullable=False)
    priority = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
