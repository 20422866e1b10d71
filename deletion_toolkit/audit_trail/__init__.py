"""
Audit Trail Module - records performed deletions.

Provides the audit entry model with integrity checksums, storage backends and
the delete behavior that writes entries as deletions happen.
"""

from .behavior import AuditTrailBehavior
from .models import AuditAction, AuditQuery, DeletionAuditEntry
from .storage import AuditStorage, MemoryAuditStorage, SQLAuditStorage, audit_table

__all__ = [
    "AuditAction",
    "AuditQuery",
    "DeletionAuditEntry",
    "AuditStorage",
    "MemoryAuditStorage",
    "SQLAuditStorage",
    "audit_table",
    "AuditTrailBehavior",
]
