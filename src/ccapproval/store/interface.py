from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from ccapproval.store.models import SessionThreadMapping, ThreadStatus


class ThreadStore(Protocol):
    def create(self, mapping: SessionThreadMapping) -> None: ...

    def get(self, session_id: str) -> SessionThreadMapping | None: ...

    def update(
        self,
        session_id: str,
        *,
        thread_ts: str | None = None,
        channel_id: str | None = None,
        status: ThreadStatus | None = None,
    ) -> SessionThreadMapping:
        """Update the given fields and bump ``updated_at``.

        Raises SessionNotFoundError if no mapping exists for ``session_id``.
        """
        ...

    def delete(self, session_id: str) -> None: ...

    def list_all(self) -> Sequence[SessionThreadMapping]: ...
