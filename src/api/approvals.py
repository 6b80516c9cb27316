"""Commission approval API endpoints."""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import AuthContext, get_auth_context, require_admin, require_reviewer
from src.db import get_db
from src.schemas.approval import (
    ApprovalDetailResponse,
    ApprovalResponse,
    ApprovalStatusUpdateRequest,
    ApprovalSubmitRequest,
    BulkApprovalRequest,
    BulkApprovalResult,
    WorkflowHistoryResponse,
)
from src.services import approvals

router = APIRouter(prefix="/approvals", tags=["Approvals"])


@router.post("", response_model=ApprovalResponse, status_code=status.HTTP_201_CREATED)
async def submit_approval(
    data: ApprovalSubmitRequest,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    """Submit (or resubmit after revision) a commission for approval."""
    approval = await approvals.submit(
        db,
        ctx,
        data.transaction_id,
        data.requested_amount,
        commission_percentage=data.commission_percentage,
        priority=data.priority,
        supporting_documents=data.supporting_documents,
        metadata=data.metadata,
    )
    return ApprovalResponse.model_validate(approval)


@router.get("/overdue", response_model=List[ApprovalResponse])
async def overdue_approvals(
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(require_reviewer),
):
    """Pending approvals past their SLA that the caller may review."""
    overdue = await approvals.list_overdue(db, ctx)
    return [ApprovalResponse.model_validate(a) for a in overdue]


@router.post("/escalate")
async def escalate_overdue_approvals(
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(require_admin),
):
    """Run the overdue escalation now instead of waiting for the scheduler."""
    escalated = await approvals.escalate_overdue(db)
    return {"escalated": escalated}


@router.post("/bulk", response_model=BulkApprovalResult)
async def bulk_update_approvals(
    data: BulkApprovalRequest,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(require_reviewer),
):
    result = await approvals.bulk_update(
        db,
        ctx,
        data.approval_ids,
        data.action,
        notes=data.review_notes,
        approved_amount=data.approved_amount,
    )
    return BulkApprovalResult(
        updated_count=result.updated_count,
        approvals=[ApprovalResponse.model_validate(a) for a in result.approvals],
        failures=result.failures,
    )


@router.get("/{approval_id}", response_model=ApprovalDetailResponse)
async def get_approval(
    approval_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    """Approval with its full workflow history."""
    approval = await approvals.get_approval_with_history(db, ctx, approval_id)
    return ApprovalDetailResponse(
        approval=ApprovalResponse.model_validate(approval),
        workflow_history=[WorkflowHistoryResponse.model_validate(h) for h in approval.history],
    )


@router.patch("/{approval_id}/status", response_model=ApprovalResponse)
async def update_approval_status(
    approval_id: int,
    data: ApprovalStatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(require_reviewer),
):
    approval = await approvals.update_status(
        db,
        ctx,
        approval_id,
        data.status,
        approved_amount=data.approved_amount,
        notes=data.review_notes,
    )
    return ApprovalResponse.model_validate(approval)
