from __future__ import annotations


class RequestIdAllocator:
    """Hand out strictly increasing request ids, never reusing one."""

    def __init__(self, start: int = 1) -> None:
        if start < 1:
            raise ValueError("request ids start at 1 or above")
        self._next_id = start

    @property
    def last_allocated(self) -> int | None:
        return self._next_id - 1 if self._next_id > 1 else None

    def allocate(self) -> int:
        request_id = self._next_id
        self._next_id += 1
        return request_id
