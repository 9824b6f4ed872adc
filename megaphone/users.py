"""Registry of known users, keyed by their numeric identifier."""

from __future__ import annotations

from collections.abc import Iterator


class UserDirectory:
    """Maps user identifiers to pseudonyms; a later entry for an id replaces an earlier one."""

    def __init__(self) -> None:
        self._pseudos: dict[int, str | None] = {}

    def add(self, user_id: int, pseudo: str | None) -> None:
        """Record a user; ``pseudo`` may be ``None`` for anonymous entries such as subscribers."""
        self._pseudos.pop(user_id, None)
        self._pseudos[user_id] = pseudo

    def pseudo_of(self, user_id: int) -> str | None:
        """Return the pseudonym registered for ``user_id``; raise KeyError if it is unknown."""
        try:
            return self._pseudos[user_id]
        except KeyError:
            raise KeyError(f"unknown user id {user_id}") from None

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._pseudos

    def __len__(self) -> int:
        return len(self._pseudos)

    def __iter__(self) -> Iterator[int]:
        return iter(self._pseudos)