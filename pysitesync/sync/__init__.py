"""Sync core for pysitesync - scan, list, reconcile and execute."""

from .engine import DeploymentDriver, DeployReport, DeployState
from .executor import CANCELLED, OperationFailure, PlanExecutor, RunResult, execute
from .lister import RemoteLister
from .models import EntryKind, Manifest, PathEntry, split_path
from .operations import Operation, OperationType, Plan
from .reconciler import Reconciler, reconcile
from .scanner import DirectoryScanner

__all__ = [
    "DeploymentDriver",
    "DeployReport",
    "DeployState",
    "PlanExecutor",
    "RunResult",
    "OperationFailure",
    "CANCELLED",
    "execute",
    "RemoteLister",
    "DirectoryScanner",
    "Reconciler",
    "reconcile",
    "EntryKind",
    "Manifest",
    "PathEntry",
    "split_path",
    "Operation",
    "OperationType",
    "Plan",
]
