"""
Request, response and per-call context models for deletion.

A ``DeleteContext`` is created for every call and passed explicitly to each
stage and behavior; handlers keep no per-call state of their own.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.engine import Connection

from ..entity.capabilities import DeletionStrategy
from ..entity.descriptor import EntityDescriptor
from ..localization import Localizer
from ..permissions import PermissionService, User
from ..unit_of_work import UnitOfWork

if TYPE_CHECKING:
    from ..cache import TwoLevelCache
    from .handler import DeleteRequestHandler


class DeleteRequest(BaseModel):
    """Identifies the entity to delete."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    entity_id: Optional[Any] = Field(None, description="Identifier of the entity")


class DeleteResponse(BaseModel):
    """Outcome of a deletion call."""

    was_already_deleted: bool = Field(
        False, description="True when the entity was already deleted before the call"
    )


@dataclass
class RequestContext:
    """Caller context and collaborators shared by the requests of one caller."""

    user: Optional[User] = None
    permissions: Optional[PermissionService] = None
    localizer: Optional[Localizer] = None
    cache: Optional["TwoLevelCache"] = None

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None


@dataclass
class DeleteContext:
    """State of one deletion call, threaded through every pipeline stage."""

    handler: "DeleteRequestHandler"
    descriptor: EntityDescriptor
    unit_of_work: UnitOfWork
    request: DeleteRequest
    request_context: RequestContext
    response: DeleteResponse = field(default_factory=DeleteResponse)
    entity_id: Any = None
    row: Dict[str, Any] = field(default_factory=dict)
    state_bag: Dict[str, Any] = field(default_factory=dict)

    @property
    def connection(self) -> Connection:
        return self.unit_of_work.connection

    @property
    def strategy(self) -> DeletionStrategy:
        return self.descriptor.strategy

    @property
    def user(self) -> Optional[User]:
        return self.request_context.user

    @property
    def localizer(self) -> Optional[Localizer]:
        return self.request_context.localizer
