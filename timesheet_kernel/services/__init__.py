"""Kernel services -- flush-only workers and the transaction-owning coordinator."""

from timesheet_kernel.services.chain_resolver import ApprovalChainResolver, ChainResolution
from timesheet_kernel.services.chat_service import ChatService
from timesheet_kernel.services.draft_service import DraftService
from timesheet_kernel.services.history_recorder import HistoryRecorder
from timesheet_kernel.services.lock_service import LockService
from timesheet_kernel.services.participant_access import ParticipantAccess
from timesheet_kernel.services.workflow_coordinator import TimesheetWorkflow
from timesheet_kernel.services.workflow_service import WorkflowService

__all__ = [
    "ApprovalChainResolver",
    "ChainResolution",
    "ChatService",
    "DraftService",
    "HistoryRecorder",
    "LockService",
    "ParticipantAccess",
    "TimesheetWorkflow",
    "WorkflowService",
]
