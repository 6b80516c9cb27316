"""
Commission approval workflow.

An agent submits the commission they request for a transaction; an admin
or the team lead of the agent's team reviews it. Allowed moves:

    pending -> approved | rejected | requires_revision
    requires_revision -> pending (resubmission, same row)

Every move appends a workflow history entry in the same transaction as
the status change.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.auth.context import AuthContext
from src.models import (
    APPROVAL_SLA_HOURS,
    PRIVILEGED_ROLES,
    REVIEW_OUTCOMES,
    Agent,
    ApprovalPriority,
    ApprovalStatus,
    ApprovalWorkflowHistory,
    CommissionApproval,
    CommissionAuditAction,
    Transaction,
    WorkflowAction,
    utcnow,
)
from src.schemas.approval import BulkFailure
from src.services.commission import to_decimal
from src.services.errors import (
    AccessDenied,
    DuplicateApprovalError,
    EngineError,
    InvalidStateTransition,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from src.utils.audit import log_commission_audit

logger = logging.getLogger(__name__)

BULK_ACTIONS = {
    "approve": ApprovalStatus.APPROVED,
    "reject": ApprovalStatus.REJECTED,
}


@dataclass
class BulkUpdateResult:
    updated_count: int = 0
    approvals: List[CommissionApproval] = field(default_factory=list)
    failures: List[BulkFailure] = field(default_factory=list)


def compute_due_date(priority: ApprovalPriority, submitted_at: datetime) -> datetime:
    """Review deadline: submission time plus the priority's SLA."""
    return submitted_at + timedelta(hours=APPROVAL_SLA_HOURS[ApprovalPriority(priority)])


def _to_json_list(documents: Optional[Sequence[Any]]) -> Optional[List[dict]]:
    if documents is None:
        return None
    return [
        doc.model_dump(mode="json") if hasattr(doc, "model_dump") else dict(doc)
        for doc in documents
    ]


def _to_json_dict(metadata: Optional[Any]) -> Optional[Dict[str, Any]]:
    if metadata is None:
        return None
    if hasattr(metadata, "model_dump"):
        return metadata.model_dump(mode="json", exclude_none=True)
    return dict(metadata)


def _history(
    approval_id: int,
    from_status: Optional[ApprovalStatus],
    to_status: ApprovalStatus,
    action_type: WorkflowAction,
    ctx: Optional[AuthContext],
    notes: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> ApprovalWorkflowHistory:
    return ApprovalWorkflowHistory(
        approval_id=approval_id,
        from_status=from_status,
        to_status=to_status,
        action_by=ctx.caller_id if ctx else None,
        action_type=action_type,
        action_notes=notes,
        ip_address=ctx.ip_address if ctx else None,
        user_agent=ctx.user_agent if ctx else None,
        timestamp=timestamp or utcnow(),
    )


async def _team_of(db: AsyncSession, agent_id: int) -> Optional[int]:
    # Column select, so a stale identity-map copy of the agent is never used
    return await db.scalar(select(Agent.team_id).where(Agent.id == agent_id))


async def _authorize_review(
    db: AsyncSession,
    ctx: AuthContext,
    approval: CommissionApproval,
) -> None:
    """Admins review anything; team leads only their own team's agents."""
    if ctx.is_admin:
        return

    if ctx.is_team_lead:
        reviewer_team = await _team_of(db, ctx.caller_id)
        agent_team = await _team_of(db, approval.agent_id)
        if reviewer_team is not None and reviewer_team == agent_team:
            return
        logger.warning(
            f"Team lead {ctx.caller_id} (team {reviewer_team}) denied review of "
            f"approval {approval.id} for agent {approval.agent_id} (team {agent_team})"
        )
        raise AccessDenied(
            "Team leads can only review approvals from their own team",
            {"approval_id": approval.id},
        )

    logger.warning(f"Agent {ctx.caller_id} with role {ctx.role} denied review of approval {approval.id}")
    raise AccessDenied("Only admins and team leads can review approvals")


async def submit(
    db: AsyncSession,
    ctx: AuthContext,
    transaction_id: int,
    requested_amount: Union[Decimal, int, str],
    commission_percentage: Optional[Union[Decimal, int, str]] = None,
    priority: ApprovalPriority = ApprovalPriority.NORMAL,
    supporting_documents: Optional[Sequence[Any]] = None,
    metadata: Optional[Any] = None,
    now: Optional[datetime] = None,
) -> CommissionApproval:
    """
    Submit a commission for approval, or resubmit one sent back for revision.

    Raises:
        ValidationError: non-positive amount or bad percentage
        NotFoundError: transaction does not exist
        AccessDenied: transaction belongs to another agent
        DuplicateApprovalError: an approval already exists and is not
            awaiting revision
        PersistenceError: storage failure
    """
    requested_amount = to_decimal(requested_amount, "requested_amount")
    if requested_amount <= 0:
        raise ValidationError("Requested amount must be positive")
    if commission_percentage is not None:
        commission_percentage = to_decimal(commission_percentage, "commission_percentage")
        if not 0 <= commission_percentage <= 100:
            raise ValidationError("Commission percentage must be between 0 and 100")
    try:
        priority = ApprovalPriority(priority)
    except ValueError as e:
        raise ValidationError(f"Unknown approval priority: {priority}") from e
    now = now or utcnow()

    try:
        transaction = await db.get(Transaction, transaction_id)
        if transaction is None:
            raise NotFoundError(
                f"Transaction {transaction_id} not found",
                {"transaction_id": transaction_id},
            )
        if transaction.agent_id != ctx.caller_id:
            raise AccessDenied("Agents can only submit their own transactions")

        result = await db.execute(
            select(CommissionApproval)
            .where(CommissionApproval.transaction_id == transaction_id)
            .with_for_update()
        )
        approval = result.scalar_one_or_none()

        if approval is not None and approval.status != ApprovalStatus.REQUIRES_REVISION:
            raise DuplicateApprovalError(
                f"Commission approval already exists for transaction {transaction_id}",
                {"approval_id": approval.id, "status": approval.status.value},
            )

        if approval is not None:
            from_status = approval.status
            approval.status = ApprovalStatus.PENDING
            approval.requested_amount = requested_amount
            approval.commission_percentage = commission_percentage
            approval.priority = priority
            if supporting_documents is not None:
                approval.supporting_documents = _to_json_list(supporting_documents)
            if metadata is not None:
                approval.approval_metadata = _to_json_dict(metadata)
            approval.approved_amount = None
            approval.reviewed_by = None
            approval.reviewed_at = None
            approval.review_notes = None
            approval.submitted_at = now
            approval.due_date = compute_due_date(priority, now)
            notes = "Resubmitted after revision"
        else:
            from_status = None
            approval = CommissionApproval(
                transaction_id=transaction_id,
                agent_id=ctx.caller_id,
                requested_amount=requested_amount,
                commission_percentage=commission_percentage,
                status=ApprovalStatus.PENDING,
                priority=priority,
                supporting_documents=_to_json_list(supporting_documents),
                approval_metadata=_to_json_dict(metadata),
                submitted_at=now,
                due_date=compute_due_date(priority, now),
            )
            db.add(approval)
            await db.flush()
            notes = "Submitted for approval"

        db.add(
            _history(
                approval.id,
                from_status,
                ApprovalStatus.PENDING,
                WorkflowAction.SUBMIT,
                ctx,
                notes,
                now,
            )
        )
        await db.commit()
    except EngineError:
        await db.rollback()
        raise
    except IntegrityError as e:
        # Lost a race with another submission for the same transaction
        await db.rollback()
        raise DuplicateApprovalError(
            f"Commission approval already exists for transaction {transaction_id}",
            {"transaction_id": transaction_id},
        ) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Submitting approval for transaction {transaction_id} failed: {e}")
        raise PersistenceError("Could not submit commission approval") from e

    logger.info(
        f"Approval {approval.id} submitted by agent {ctx.caller_id} for transaction "
        f"{transaction_id} ({priority.value}, due {approval.due_date})"
    )
    return approval


async def update_status(
    db: AsyncSession,
    ctx: AuthContext,
    approval_id: int,
    new_status: Union[ApprovalStatus, str],
    approved_amount: Optional[Union[Decimal, int, str]] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CommissionApproval:
    """
    Record a reviewer decision on a pending approval.

    Authorization is checked before anything is changed; a denied or
    invalid call leaves the approval and its history untouched.
    """
    try:
        new_status = ApprovalStatus(new_status)
    except ValueError as e:
        raise ValidationError(f"Unknown approval status: {new_status}") from e
    if new_status not in REVIEW_OUTCOMES:
        raise ValidationError(
            f"Cannot set status to {new_status.value}",
            {"allowed": [s.value for s in REVIEW_OUTCOMES]},
        )
    if approved_amount is not None:
        approved_amount = to_decimal(approved_amount, "approved_amount")
        if approved_amount <= 0:
            raise ValidationError("Approved amount must be positive")
    now = now or utcnow()

    try:
        result = await db.execute(
            select(CommissionApproval)
            .where(CommissionApproval.id == approval_id)
            .with_for_update()
        )
        approval = result.scalar_one_or_none()
        if approval is None:
            raise NotFoundError(
                f"Approval {approval_id} not found",
                {"approval_id": approval_id},
            )

        await _authorize_review(db, ctx, approval)

        if approval.status != ApprovalStatus.PENDING:
            raise InvalidStateTransition(
                f"Approval {approval_id} is {approval.status.value}, "
                f"only pending approvals can be reviewed",
                {"current_status": approval.status.value, "requested_status": new_status.value},
            )

        previous_status = approval.status
        approval.status = new_status
        approval.reviewed_by = ctx.caller_id
        approval.reviewed_at = now
        approval.review_notes = notes
        if approved_amount is not None:
            approval.approved_amount = approved_amount

        db.add(
            _history(
                approval.id,
                previous_status,
                new_status,
                REVIEW_OUTCOMES[new_status],
                ctx,
                notes,
                now,
            )
        )

        if approved_amount is not None and approved_amount != approval.requested_amount:
            log_commission_audit(
                db,
                transaction_id=approval.transaction_id,
                agent_id=approval.agent_id,
                action=CommissionAuditAction.ADJUST_APPROVED_AMOUNT,
                changed_by=ctx.caller_id,
                old_values={"requested_amount": str(approval.requested_amount)},
                new_values={"approved_amount": str(approved_amount)},
                change_reason=notes,
                ip_address=ctx.ip_address,
                user_agent=ctx.user_agent,
            )

        await db.commit()
    except EngineError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Updating approval {approval_id} failed: {e}")
        raise PersistenceError("Could not update commission approval") from e

    logger.info(
        f"Approval {approval_id} {previous_status.value} -> {new_status.value} "
        f"by agent {ctx.caller_id}"
    )
    return approval


async def bulk_update(
    db: AsyncSession,
    ctx: AuthContext,
    approval_ids: Sequence[int],
    action: str,
    notes: Optional[str] = None,
    approved_amount: Optional[Union[Decimal, int, str]] = None,
) -> BulkUpdateResult:
    """
    Approve or reject several approvals.

    Each item is committed on its own, so one failure does not undo the
    others. Failures are reported per item.
    """
    if action not in BULK_ACTIONS:
        raise ValidationError(
            f"Unknown bulk action: {action}",
            {"allowed": sorted(BULK_ACTIONS)},
        )
    new_status = BULK_ACTIONS[action]

    outcome = BulkUpdateResult()
    for approval_id in dict.fromkeys(approval_ids):
        try:
            approval = await update_status(
                db, ctx, approval_id, new_status, approved_amount, notes
            )
        except EngineError as e:
            outcome.failures.append(
                BulkFailure(
                    approval_id=approval_id,
                    error=e.public_message,
                    error_code=e.code,
                )
            )
            continue
        outcome.approvals.append(approval)
        outcome.updated_count += 1

    # A later item's rollback expires rows committed earlier in the loop
    for approval in outcome.approvals:
        await db.refresh(approval)

    logger.info(
        f"Bulk {action} by agent {ctx.caller_id}: {outcome.updated_count} updated, "
        f"{len(outcome.failures)} failed"
    )
    return outcome


async def list_overdue(
    db: AsyncSession,
    ctx: AuthContext,
    now: Optional[datetime] = None,
) -> List[CommissionApproval]:
    """Pending approvals past their due date that the caller may review."""
    if ctx.role not in PRIVILEGED_ROLES:
        raise AccessDenied("Only admins and team leads can list overdue approvals")
    now = now or utcnow()

    query = select(CommissionApproval).where(
        and_(
            CommissionApproval.status == ApprovalStatus.PENDING,
            CommissionApproval.due_date < now,
        )
    )
    if not ctx.is_admin:
        reviewer_team = await _team_of(db, ctx.caller_id)
        if reviewer_team is None:
            return []
        query = query.join(Agent, Agent.id == CommissionApproval.agent_id).where(
            Agent.team_id == reviewer_team
        )

    result = await db.execute(query.order_by(CommissionApproval.due_date))
    return list(result.scalars().all())


async def escalate_overdue(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Raise overdue pending approvals to urgent priority.

    Status is unchanged; each escalation is recorded as a system action
    in the workflow history. Returns the number escalated.
    """
    now = now or utcnow()

    try:
        result = await db.execute(
            select(CommissionApproval)
            .where(
                and_(
                    CommissionApproval.status == ApprovalStatus.PENDING,
                    CommissionApproval.due_date < now,
                    CommissionApproval.priority != ApprovalPriority.URGENT,
                )
            )
            .with_for_update()
        )
        overdue = list(result.scalars().all())

        for approval in overdue:
            reason = (
                f"Overdue: {approval.priority.value} priority approval not reviewed "
                f"by {approval.due_date}"
            )
            approval.priority = ApprovalPriority.URGENT
            approval.approval_metadata = {
                **(approval.approval_metadata or {}),
                "escalation_reason": reason,
            }
            db.add(
                _history(
                    approval.id,
                    ApprovalStatus.PENDING,
                    ApprovalStatus.PENDING,
                    WorkflowAction.ESCALATE,
                    None,
                    reason,
                    now,
                )
            )

        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Escalating overdue approvals failed: {e}")
        raise PersistenceError("Could not escalate overdue approvals") from e

    if overdue:
        logger.info(f"Escalated {len(overdue)} overdue approvals to urgent")
    return len(overdue)


async def get_approval_with_history(
    db: AsyncSession,
    ctx: AuthContext,
    approval_id: int,
) -> CommissionApproval:
    """Approval with its workflow history loaded, oldest entry first."""
    result = await db.execute(
        select(CommissionApproval)
        .where(CommissionApproval.id == approval_id)
        .options(selectinload(CommissionApproval.history))
        .execution_options(populate_existing=True)
    )
    approval = result.scalar_one_or_none()
    if approval is None:
        raise NotFoundError(f"Approval {approval_id} not found", {"approval_id": approval_id})

    if approval.agent_id != ctx.caller_id:
        await _authorize_review(db, ctx, approval)
    return approval
