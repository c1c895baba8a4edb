"""
Output Tail
===========
Fixed-capacity ring buffer of the most recent output lines of a command.
Used to surface the end of a failed build without keeping the whole log.
"""
from collections import deque
from typing import Iterator, List


class OutputTail:
    """Keeps the last ``capacity`` lines; older lines fall off the front."""

    def __init__(self, capacity: int = 6) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._lines: deque = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._lines.maxlen

    def append(self, line: str) -> None:
        self._lines.append(line)

    def lines(self) -> List[str]:
        return list(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._lines))
