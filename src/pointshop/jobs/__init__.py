"""Scheduled background jobs."""

from .review_sync import register_scheduler

__all__ = ["register_scheduler"]
