"""
Commission approval schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.models.approval import ApprovalPriority, ApprovalStatus, WorkflowAction


class SupportingDocument(BaseModel):
    id: str
    name: str
    url: str
    type: str
    uploaded_at: str


class ApprovalMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    submission_notes: Optional[str] = None
    client_feedback: Optional[str] = None
    internal_notes: Optional[str] = None
    escalation_reason: Optional[str] = None


class ApprovalSubmitRequest(BaseModel):
    """Request to submit (or resubmit) a commission for approval."""

    transaction_id: int
    requested_amount: Decimal = Field(..., gt=0)
    commission_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    priority: ApprovalPriority = ApprovalPriority.NORMAL
    supporting_documents: Optional[List[SupportingDocument]] = None
    metadata: Optional[ApprovalMetadata] = None


class ApprovalStatusUpdateRequest(BaseModel):
    status: ApprovalStatus
    approved_amount: Optional[Decimal] = Field(None, gt=0)
    review_notes: Optional[str] = Field(None, max_length=2000)


class BulkApprovalRequest(BaseModel):
    approval_ids: List[int] = Field(..., min_length=1, max_length=50)
    action: Literal["approve", "reject"]
    review_notes: Optional[str] = Field(None, max_length=2000)
    approved_amount: Optional[Decimal] = Field(None, gt=0)


class ApprovalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    transaction_id: int
    agent_id: int
    requested_amount: Decimal
    approved_amount: Optional[Decimal]
    commission_percentage: Optional[Decimal]
    status: ApprovalStatus
    priority: ApprovalPriority
    reviewed_by: Optional[int]
    reviewed_at: Optional[datetime]
    review_notes: Optional[str]
    supporting_documents: Optional[list]
    approval_metadata: Optional[dict] = Field(None, serialization_alias="metadata")
    submitted_at: datetime
    due_date: Optional[datetime]


class WorkflowHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    from_status: Optional[ApprovalStatus]
    to_status: ApprovalStatus
    action_by: Optional[int]
    action_type: WorkflowAction
    action_notes: Optional[str]
    ip_address: Optional[str]
    user_agent: Optional[str]
    timestamp: datetime


class ApprovalDetailResponse(BaseModel):
    approval: ApprovalResponse
    workflow_history: List[WorkflowHistoryResponse]


class BulkFailure(BaseModel):
    approval_id: int
    error: str
    error_code: str


class BulkApprovalResult(BaseModel):
    updated_count: int
    approvals: List[ApprovalResponse]
    failures: List[BulkFailure] = []
