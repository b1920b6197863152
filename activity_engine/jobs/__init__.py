"""
Background Jobs for the Activity Engine.

This module contains scheduled and background jobs:
- missed_task_cron: periodic missed-task sweep and reminder digests
"""

from .missed_task_cron import run_missed_task_job, run_sweep

__all__ = ["run_missed_task_job", "run_sweep"]
