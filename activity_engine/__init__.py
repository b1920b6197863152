"""Activity Engine: deadlines, missed-task alerts and the unified activity timeline."""

__version__ = "1.0.0"
