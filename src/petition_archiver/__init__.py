"""Petition archiver - moves closed signature and validation records into archive tables."""

from petition_archiver.mover import TransitionMover
from petition_archiver.orphans import OrphanReconciler
from petition_archiver.status import StatusCode
from petition_archiver.store import RecordStore
from petition_archiver.watermark import WatermarkCalculator
from petition_archiver.workflow import ArchiveWorkflow, run_archive_workflow

__version__ = "0.1.0"

__all__ = [
    "ArchiveWorkflow",
    "OrphanReconciler",
    "RecordStore",
    "StatusCode",
    "TransitionMover",
    "WatermarkCalculator",
    "run_archive_workflow",
]
