from __future__ import annotations

from typing import Protocol

from teachme.models.audit import AuditEntry


class AuditLogRepo(Protocol):
    async def add(self, entry: AuditEntry) -> None: ...


class InMemoryAuditLogRepo:
    def __init__(self) -> None:
        self._entries: list[AuditEntry] = []

    async def add(self, entry: AuditEntry) -> None:
        self._entries.append(entry)

    def entries(self, action: str | None = None) -> list[AuditEntry]:
        if action is None:
            return list(self._entries)
        return [e for e in self._entries if e.action == action]

    def clear(self) -> None:
        self._entries.clear()
