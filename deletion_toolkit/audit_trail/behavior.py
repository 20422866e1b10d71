"""Delete behavior recording deletions in an audit trail."""

import logging
from typing import TYPE_CHECKING, Optional

from ..config import DeletionConfig, get_config
from ..delete.behaviors import DeleteBehavior
from .models import AuditAction, DeletionAuditEntry
from .storage import AuditStorage

if TYPE_CHECKING:
    from ..delete.models import DeleteContext

logger = logging.getLogger(__name__)


class AuditTrailBehavior(DeleteBehavior):
    """
    Writes one audit entry per performed deletion.

    Transactional storages receive the entry on the unit of work's connection.
    Other storages receive it only after the unit of work commits.
    """

    def __init__(self, storage: AuditStorage, config: Optional[DeletionConfig] = None):
        self.storage = storage
        self.config = config or get_config()

    def build_entry(self, ctx: "DeleteContext") -> DeletionAuditEntry:
        entry = DeletionAuditEntry(
            user_id=ctx.request_context.user_id,
            action=AuditAction.from_strategy(ctx.strategy),
            strategy=ctx.strategy,
            entity_type=ctx.descriptor.name,
            entity_id=ctx.entity_id,
            snapshot=ctx.row,
            application=self.config.application_name,
        )
        return entry.seal(self.config.checksum_algorithm)

    def on_audit(self, ctx: "DeleteContext") -> None:
        if not self.config.audit_enabled:
            return

        entry = self.build_entry(ctx)
        ctx.state_bag["audit_entry"] = entry
        if self.storage.transactional:
            self.storage.store(entry, ctx.connection)
        else:
            ctx.unit_of_work.on_commit(lambda: self.storage.store(entry))
        logger.debug(entry.to_log_format())
