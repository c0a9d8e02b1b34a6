"""TaskLedger - task lifecycle engine with audit trail and derived views."""

__version__ = "0.1.0"
