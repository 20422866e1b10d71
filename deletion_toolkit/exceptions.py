"""Exceptions for deletion operations."""

from typing import Any, Optional

from .localization import Localizer, localize


class DeletionError(Exception):
    """Base exception for deletion operations."""

    def __init__(
        self, message: str, entity_id: Optional[Any] = None, key: Optional[str] = None
    ):
        self.entity_id = entity_id
        self.key = key
        super().__init__(message)


class MissingRequiredFieldError(DeletionError):
    """Raised when a required request field is absent."""

    def __init__(self, field_name: str, localizer: Optional[Localizer] = None):
        self.field_name = field_name
        super().__init__(
            localize(localizer, "Validation.Required", field=field_name),
            key="Validation.Required",
        )


class EntityNotFoundError(DeletionError):
    """Raised when the entity cannot be loaded or no row was affected."""

    def __init__(
        self, entity_name: str, entity_id: Any, localizer: Optional[Localizer] = None
    ):
        self.entity_name = entity_name
        super().__init__(
            localize(
                localizer,
                "Validation.EntityNotFound",
                entity=entity_name,
                entity_id=entity_id,
            ),
            entity_id=entity_id,
            key="Validation.EntityNotFound",
        )


class PermissionDeniedError(DeletionError, PermissionError):
    """Raised when the caller lacks the permission required for the entity."""

    def __init__(self, permission: str, localizer: Optional[Localizer] = None):
        self.permission = permission
        super().__init__(
            localize(localizer, "Authorization.AccessDenied", permission=permission),
            key="Authorization.AccessDenied",
        )


class ValidationFailedError(DeletionError):
    """Raised when a validation or before-delete behavior objects to a deletion."""


class InvalidEntityConfiguration(DeletionError):
    """Raised when an entity descriptor is rejected at registration time."""

    def __init__(self, entity_name: str, reason: str):
        self.entity_name = entity_name
        self.reason = reason
        super().__init__(f"Invalid entity configuration for {entity_name}: {reason}")


class UnitOfWorkError(DeletionError):
    """Raised when a finished unit of work is used again."""
