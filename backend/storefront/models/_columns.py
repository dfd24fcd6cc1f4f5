"""
Column helpers shared by every table

All ids are UUIDs generated by PostgreSQL; every timestamp is timezone aware.
"""
from sqlalchemy import Column, DateTime, ForeignKey, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func


def uuid_pk():
    return Column(UUID(as_uuid=False), primary_key=True, server_default=text("gen_random_uuid()"))


def tenant_fk():
    return Column(
        UUID(as_uuid=False),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


def created_at():
    return Column(DateTime(timezone=True), server_default=func.now())


def updated_at():
    return Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
