"""
Undo history for portrait stills.
"""

from typing import Generic, Iterator, List, TypeVar

from .exceptions import EmptyHistoryError

T = TypeVar("T")


class HistoryStack(Generic[T]):
    """
    Strict LIFO stack of prior portrait images, oldest first.

    Entries are snapshots: callers push immutable values and never edit
    them after the push.
    """

    def __init__(self) -> None:
        self._items: List[T] = []

    def push(self, item: T) -> None:
        """Push a snapshot onto the tail of the stack."""
        self._items.append(item)

    def pop(self) -> T:
        """
        Remove and return the most recent snapshot.

        Raises:
            EmptyHistoryError: If there is nothing to pop.
        """
        if not self._items:
            raise EmptyHistoryError("History is empty")
        return self._items.pop()

    def clear(self) -> None:
        self._items.clear()

    def snapshot(self) -> List[T]:
        """Return a copy of the entries, oldest first."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))
