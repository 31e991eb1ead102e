"""
Timesheet Kernel - approval workflow core

A lock-disciplined, append-only timesheet review pipeline with:
- Multi-stage approval chain (project manager -> department manager -> general manager)
- Auto-escalation when a stage has no eligible approver
- Rejection cascade and reopen/resubmit cycles
- Immutable workflow history
- Threaded discussion per timesheet
"""

__version__ = "0.1.0"
