"""SQLAlchemy models shared across all services."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    TypeDecorator,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base
from .time_range import TimeRange, as_utc, utcnow


class RoleEnum(str, Enum):
    ADMIN = "admin"
    EMPLOYEE = "employee"
    DEPARTMENT_HEAD = "department_head"
    FACILITY_MANAGER = "facility_manager"
    ADMINISTRATION = "administration"
    AUDITOR = "auditor"


KNOWN_ROLES = frozenset(role.value for role in RoleEnum)


class ResourceType(str, Enum):
    ROOM = "ROOM"
    DESK = "DESK"


class ResourceStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    MAINTENANCE = "MAINTENANCE"
    PENDING = "PENDING"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class ApprovalDecision(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class UTCDateTime(TypeDecorator):
    """Stores naive UTC and hands back aware UTC datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        return as_utc(value)


class User(Base):
    """Read projection of the external user directory."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100))
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True)
    department: Mapped[Optional[str]] = mapped_column(String(100), default=None)
    roles: Mapped[list[str]] = mapped_column(JSON, default=list)

    bookings: Mapped[List["Booking"]] = relationship(back_populates="user")

    @property
    def role_set(self) -> frozenset[RoleEnum]:
        """Roles this service knows about; other directory roles grant nothing here."""

        return frozenset(RoleEnum(role) for role in self.roles or [] if role in KNOWN_ROLES)

    def has_role(self, *roles: RoleEnum) -> bool:
        return not self.role_set.isdisjoint(roles)


class Resource(Base):
    __tablename__ = "resources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), unique=True)
    type: Mapped[ResourceType] = mapped_column(SqlEnum(ResourceType), index=True)
    capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    location: Mapped[str] = mapped_column(String(255), index=True)
    features: Mapped[list[str]] = mapped_column(JSON, default=list)
    status: Mapped[ResourceStatus] = mapped_column(SqlEnum(ResourceStatus), default=ResourceStatus.AVAILABLE)

    bookings: Mapped[List["Booking"]] = relationship(back_populates="resource")


class WorkflowNode(Base):
    __tablename__ = "workflow_nodes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100))
    approver_role: Mapped[RoleEnum] = mapped_column(SqlEnum(RoleEnum))
    sort_order: Mapped[int] = mapped_column(Integer, default=0, index=True)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (CheckConstraint("end_time > start_time", name="ck_bookings_time_range"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    resource_id: Mapped[int] = mapped_column(ForeignKey("resources.id", ondelete="CASCADE"), index=True)
    resource_type: Mapped[ResourceType] = mapped_column(SqlEnum(ResourceType))
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    purpose: Mapped[str] = mapped_column(Text, default="")
    participants: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, index=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=None, onupdate=utcnow)

    status: Mapped[BookingStatus] = mapped_column(SqlEnum(BookingStatus), default=BookingStatus.PENDING, index=True)
    current_node_index: Mapped[int] = mapped_column(Integer, default=0)
    approval_history: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    workflow_snapshot: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    has_leader: Mapped[bool] = mapped_column(Boolean, default=False)
    leader_details: Mapped[Optional[str]] = mapped_column(String(255), default=None)
    is_video_conference: Mapped[bool] = mapped_column(Boolean, default=False)
    needs_tea_service: Mapped[bool] = mapped_column(Boolean, default=False)
    needs_name_card: Mapped[bool] = mapped_column(Boolean, default=False)
    name_card_details: Mapped[Optional[str]] = mapped_column(String(255), default=None)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    user: Mapped[User] = relationship(back_populates="bookings")
    resource: Mapped[Resource] = relationship(back_populates="bookings")

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(self.start_time, self.end_time)
