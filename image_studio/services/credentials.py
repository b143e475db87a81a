from __future__ import annotations

from typing import Optional, Protocol


class CredentialSelector(Protocol):
    """Host hook that lets the user pick a paid API key before a Pro call."""

    def has_selected_key(self) -> bool:
        ...

    def open_select_key(self) -> None:
        ...

    def selected_key(self) -> Optional[str]:
        ...


class NullCredentialSelector:
    """Default used when the host offers no key picker; configured keys apply."""

    def has_selected_key(self) -> bool:
        return False

    def open_select_key(self) -> None:
        return None

    def selected_key(self) -> Optional[str]:
        return None


class StaticCredentialSelector:
    """Selector backed by a key supplied up front, e.g. per API request."""

    def __init__(self, key: Optional[str]) -> None:
        self._key = (key or "").strip() or None

    def has_selected_key(self) -> bool:
        return self._key is not None

    def open_select_key(self) -> None:
        return None

    def selected_key(self) -> Optional[str]:
        return self._key
