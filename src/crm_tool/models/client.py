"""Client model - workspace-scoped CRM records"""
import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Text, Numeric, DateTime, Enum, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from src.crm_tool.models.base import Base


class ClientStatus(str, enum.Enum):
    LEAD = "lead"
    ACTIVE = "active"
    INACTIVE = "inactive"
    CHURNED = "churned"


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (
        Index("ix_clients_workspace_email", "workspace_id", "email"),
    )
    
    id: Mapped[int] = mapped_column(primary_key=True)
    workspace_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    company: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[ClientStatus] = mapped_column(
        Enum(ClientStatus, name="client_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ClientStatus.LEAD,
        server_default=ClientStatus.LEAD.value
    )
    source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    value: Mapped[Optional[Decimal]] = mapped_column(Numeric, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
