"""
Approval Kernel

Multi-step approval routing over a tabular store with:
- Config-driven routing of requests to ordered approver chains
- A single-active-step state machine per chain
- Idempotent resubmission keyed by the originating response
- Instant or digest-deferred approver notification
- Dashboard and digest projections derived from stored chains
"""

__version__ = "0.1.0"
