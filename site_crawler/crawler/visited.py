"""
site_crawler.crawler.visited: Общее множество уже запланированных URL.
"""
from __future__ import annotations

import threading
from typing import Iterator, Set


class VisitedSet:
    """
    Множество канонических URL с атомарной операцией «проверить и добавить».

    Один экземпляр разделяется всеми задачами одного обхода. Блокировка
    никогда не удерживается во время ввода-вывода.
    """

    def __init__(self) -> None:
        self._urls: Set[str] = set()
        self._lock = threading.Lock()

    def try_visit(self, url: str) -> bool:
        """True, если URL добавлен сейчас; False, если он уже был занят."""
        with self._lock:
            if url in self._urls:
                return False
            self._urls.add(url)
            return True

    def snapshot(self) -> Set[str]:
        """Копия текущего содержимого."""
        with self._lock:
            return set(self._urls)

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._urls

    def __len__(self) -> int:
        with self._lock:
            return len(self._urls)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.snapshot()))
