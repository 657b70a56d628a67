"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, TaskHistoryEntry, ...)
- task_filter.py: structured predicates (in-memory match + SQL compilation)
- task_store.py: SQLite-backed storage with compare-and-set updates and history
- task_api.py: user-initiated transitions (complete/cancel/assign/reschedule)
"""
