"""
Job bodies.

Components:
- predicates.py: selection filters shared by the jobs, notifier delivery helper
- overdue.py: OverdueDetector (the only automatic status edge)
- reminders.py: ReminderDispatcher
- recurrence.py: next-occurrence calculation + RecurrenceEngine
- retention.py: RetentionJanitor
- statistics.py: StatisticsReporter
"""
