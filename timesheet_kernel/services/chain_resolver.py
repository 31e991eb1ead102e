"""
ApprovalChainResolver -- who must act next.

Responsibility:
    Given a timesheet and the stage that just cleared (or none, for a
    fresh submission), finds the first later stage that has at least one
    eligible approver and creates one ``pending`` approval row per
    approver at that stage.  Vacant stages are skipped.  When no later
    stage has anyone, it reports that the chain is exhausted and creates
    nothing; the caller auto-approves.

Architecture position:
    Kernel > Services -- imperative shell.
    Reads the organization directory (no locking, staleness accepted);
    writes approval rows inside the caller's locked transaction.

Approver sets per stage:
    pm  -- managers of every distinct project on the timesheet's rows,
           deduplicated by person.
    dm  -- managers of the submitting employee's department.
    gm  -- every employee holding a general-manager role name.

Invariants enforced:
    - Single entry stage: one call creates rows for exactly one stage,
      never several.
    - No cross-stage collapsing: a person who is PM and DM gets a row at
      each stage they reach; the (timesheet, approver, stage) unique
      constraint only rejects duplicates within a stage.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from timesheet_kernel.domain.clock import Clock, SystemClock
from timesheet_kernel.domain.directory import OrganizationDirectory
from timesheet_kernel.domain.policy import WorkflowPolicy
from timesheet_kernel.domain.workflow import ApprovalStatus, Stage, stages_after
from timesheet_kernel.logging_config import get_logger
from timesheet_kernel.models.approval import TimesheetApproval
from timesheet_kernel.models.timesheet import Timesheet
from timesheet_kernel.services.base import BaseService

logger = get_logger("services.chain_resolver")


@dataclass(frozen=True)
class ChainResolution:
    """Outcome of one resolution step.

    ``stage`` is None when every remaining stage was vacant.
    """

    stage: Stage | None
    approver_ids: tuple[UUID, ...] = ()
    skipped: tuple[Stage, ...] = ()

    @property
    def exhausted(self) -> bool:
        return self.stage is None


class ApprovalChainResolver(BaseService):
    """Creates the pending approval rows for the next staffed stage."""

    def __init__(
        self,
        session: Session,
        directory: OrganizationDirectory,
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
    ):
        super().__init__(session)
        self._directory = directory
        self._clock = clock or SystemClock()
        self._policy = policy or WorkflowPolicy()

    def approvers_for(self, stage: Stage, timesheet: Timesheet) -> frozenset[UUID]:
        """Eligible approvers for one stage of one timesheet."""
        if stage is Stage.PM:
            managers: set[UUID] = set()
            for project_id in {row.project_id for row in timesheet.rows}:
                managers |= self._directory.project_managers_of(project_id)
            return frozenset(managers)

        if stage is Stage.DM:
            department_id = self._directory.department_of(timesheet.employee_id)
            if department_id is None:
                return frozenset()
            return frozenset(self._directory.department_managers_of(department_id))

        return frozenset(
            self._directory.employees_with_roles(self._policy.general_manager_role_names)
        )

    def resolve(self, timesheet: Timesheet, after: Stage | None = None) -> ChainResolution:
        """
        Create pending rows for the first staffed stage after ``after``.

        Preconditions:
            - The caller holds the timesheet lock.
            - No approval rows are pending for this timesheet.
        """
        skipped: list[Stage] = []
        for stage in stages_after(after):
            approvers = self.approvers_for(stage, timesheet)
            if not approvers:
                skipped.append(stage)
                logger.info(
                    "approval_stage_skipped",
                    extra={
                        "timesheet_id": str(timesheet.id),
                        "stage": stage.value,
                        "reason": "no eligible approver",
                    },
                )
                continue

            ordered = tuple(sorted(approvers, key=str))
            now = self._clock.now()
            for approver_id in ordered:
                self.session.add(
                    TimesheetApproval(
                        timesheet_id=timesheet.id,
                        approver_id=approver_id,
                        stage=stage.value,
                        status=ApprovalStatus.PENDING.value,
                        created_at=now,
                    )
                )
            self.session.flush()

            logger.info(
                "approval_stage_opened",
                extra={
                    "timesheet_id": str(timesheet.id),
                    "stage": stage.value,
                    "approver_count": len(ordered),
                    "skipped": [s.value for s in skipped],
                },
            )
            return ChainResolution(stage=stage, approver_ids=ordered, skipped=tuple(skipped))

        logger.info(
            "approval_chain_exhausted",
            extra={
                "timesheet_id": str(timesheet.id),
                "after": after.value if after else None,
                "skipped": [s.value for s in skipped],
            },
        )
        return ChainResolution(stage=None, skipped=tuple(skipped))
