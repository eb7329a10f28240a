"""Collaboration selection and reconciliation for magazine curation.

This module exposes the session, the selection manager and the
reconciliation engine so that consumers of the package can simply import
them from ``collab_curation``.
"""

from .core.identifiers import decode, encode_community, encode_local
from .core.models import Category, ParticipationMode, SelectionSet
from .core.reconcile import ReconciliationEngine, SaveReport
from .core.selection import SelectionSetManager
from .core.storage import LocalMirror
from .session import CurationSession

__all__ = [
    "Category",
    "CurationSession",
    "LocalMirror",
    "ParticipationMode",
    "ReconciliationEngine",
    "SaveReport",
    "SelectionSet",
    "SelectionSetManager",
    "decode",
    "encode_community",
    "encode_local",
]
