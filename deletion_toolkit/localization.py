"""Text lookup for user-facing error messages."""

from typing import Any, Dict, Mapping, Optional, Protocol

DEFAULT_TEXTS: Dict[str, str] = {
    "Validation.Required": "'{field}' is required.",
    "Validation.EntityNotFound": "{entity} with ID '{entity_id}' was not found.",
    "Validation.InvalidId": "'{entity_id}' is not a valid ID for {entity}.",
    "Validation.DeleteUserRequired": (
        "Deleting {entity} requires a user to record in the deletion log."
    ),
    "Authorization.AccessDenied": (
        "Authorization has been denied for this request ({permission})."
    ),
}


class Localizer(Protocol):
    """Maps text keys to translated text."""

    def get(self, key: str) -> Optional[str]:
        ...


class DictLocalizer:
    """Localizer backed by a dictionary, falling back to the built-in texts."""

    def __init__(
        self,
        texts: Optional[Mapping[str, str]] = None,
        fallback: Optional[Mapping[str, str]] = None,
    ):
        self.texts = dict(texts or {})
        self.fallback = dict(DEFAULT_TEXTS if fallback is None else fallback)

    def get(self, key: str) -> Optional[str]:
        if key in self.texts:
            return self.texts[key]
        return self.fallback.get(key)


def localize(localizer: Optional[Localizer], key: str, **params: Any) -> str:
    """
    Resolve a text key and format it with the given parameters.

    Unknown keys resolve to the key itself so a missing translation never
    hides the underlying error.
    """
    text = localizer.get(key) if localizer is not None else None
    if text is None:
        text = DEFAULT_TEXTS.get(key, key)
    try:
        return text.format(**params)
    except (KeyError, IndexError, ValueError):
        return text
