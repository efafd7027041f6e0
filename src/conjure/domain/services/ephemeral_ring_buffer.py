"""update 中に生成されたオブジェクト数を上限で抑えるリングバッファ。"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable

from conjure.domain.entities.tracked_object import TrackedObject

DEFAULT_EPHEMERAL_CAPACITY = 200


class EphemeralRingBuffer:
    """全 behavior 共有の FIFO。上限超過時は最古のものから退避させる。"""

    def __init__(
        self,
        capacity: int = DEFAULT_EPHEMERAL_CAPACITY,
        on_evict: Callable[[TrackedObject], None] | None = None,
    ) -> None:
        """容量と退避時コールバックを受け取る。"""
        if capacity < 1:
            raise ValueError("capacity は 1 以上である必要があります。")
        self._capacity = capacity
        self._on_evict = on_evict
        self._entries: deque[TrackedObject] = deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> tuple[TrackedObject, ...]:
        return tuple(self._entries)

    def discard(self, tracked_object: TrackedObject) -> bool:
        """退避させずに取り除く。含まれていなければ False。"""
        try:
            self._entries.remove(tracked_object)
        except ValueError:
            return False
        return True

    def push(self, tracked_object: TrackedObject) -> tuple[TrackedObject, ...]:
        """末尾に追加し、容量超過分を古い順に取り出して返す。"""
        self._entries.append(tracked_object)
        evicted: list[TrackedObject] = []
        while len(self._entries) > self._capacity:
            oldest = self._entries.popleft()
            evicted.append(oldest)
            if self._on_evict is not None:
                self._on_evict(oldest)
        return tuple(evicted)
