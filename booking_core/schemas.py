"""Pydantic schemas for the booking and resource services."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .models import ApprovalDecision, BookingStatus, ResourceStatus, ResourceType, RoleEnum


class ResourceRead(BaseModel):
    id: int
    name: str
    type: ResourceType
    capacity: Optional[int] = None
    location: str
    features: List[str] = Field(default_factory=list)
    status: ResourceStatus

    model_config = {"from_attributes": True}


class WorkflowStepRead(BaseModel):
    id: int
    name: str
    approver_role: RoleEnum

    model_config = {"from_attributes": True}


class ApprovalRecordRead(BaseModel):
    node_name: str
    approver_name: str
    decision: ApprovalDecision
    timestamp: datetime
    comment: Optional[str] = None


class BookingExtrasIn(BaseModel):
    participants: int = Field(1, ge=1)
    has_leader: bool = False
    leader_details: Optional[str] = Field(None, max_length=255)
    is_video_conference: bool = False
    needs_tea_service: bool = False
    needs_name_card: bool = False
    name_card_details: Optional[str] = Field(None, max_length=255)


class BookingCreate(BookingExtrasIn):
    resource_id: int
    purpose: str = Field(..., min_length=1, max_length=1000)
    start_time: datetime
    end_time: datetime


class BookingRead(BaseModel):
    id: int
    user_id: int
    resource_id: int
    resource_type: ResourceType
    start_time: datetime
    end_time: datetime
    purpose: str
    participants: int
    created_at: datetime
    status: BookingStatus
    current_node_index: int
    approval_history: List[ApprovalRecordRead] = Field(default_factory=list)
    workflow_snapshot: List[WorkflowStepRead] = Field(default_factory=list)
    has_leader: bool
    leader_details: Optional[str] = None
    is_video_conference: bool
    needs_tea_service: bool
    needs_name_card: bool
    name_card_details: Optional[str] = None

    model_config = {"from_attributes": True}


class RejectRequest(BaseModel):
    comment: Optional[str] = Field(None, max_length=1000)


class SlotRead(BaseModel):
    start_time: datetime
    end_time: datetime


class AvailabilityRead(BaseModel):
    resource_id: int
    available: bool
    conflicting_booking_id: Optional[int] = None
    owner_id: Optional[int] = None
    suggestion: Optional[SlotRead] = None


class CanActRead(BaseModel):
    booking_id: int
    can_act: bool


class SweepResult(BaseModel):
    completed: List[int]
