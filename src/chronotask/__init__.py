"""chronotask: background scheduling and task-lifecycle engine."""

__version__ = "0.1.0"
