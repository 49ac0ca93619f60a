"""Snapshot validation package."""

from bankapp.validation.validator import SnapshotValidator

__all__ = ["SnapshotValidator"]
