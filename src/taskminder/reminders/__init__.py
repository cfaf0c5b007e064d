"""
Reminder subsystem.

Components:
- reminder_models.py: data structures (Reminder, ReminderStatus, CycleSummary, ...)
- reminder_store.py: SQLite-backed reminder storage + due query / state transitions
- directory_store.py: SQLite-backed task/user lookups
- rendering.py: notification subject/body
- dispatcher.py: chunked concurrent dispatch with per-reminder outcomes
- scan_cycle.py: one fetch -> dispatch -> summarize pass
- scheduler.py: periodic driver, at most one cycle in flight
- reminder_api.py: small high-level helpers used by the task collaborator
"""
