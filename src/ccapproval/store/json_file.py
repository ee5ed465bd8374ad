"""JSON file store for session -> Slack thread mappings.

The whole mapping lives in one JSON object keyed by session id. Writes go to a temp file
that is then renamed over the target, so readers never see a partial file.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ccapproval.errors import SessionNotFoundError
from ccapproval.store.interface import ThreadStore
from ccapproval.store.models import SessionThreadMapping, ThreadStatus

logger = logging.getLogger(__name__)


class JsonFileThreadStore(ThreadStore):
    def __init__(self, path: Path) -> None:
        self.path = path

    def _read(self) -> dict[str, SessionThreadMapping]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}

        data: Any = json.loads(raw) if raw.strip() else {}
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object in {self.path}")
        return {key: SessionThreadMapping.model_validate(value) for key, value in data.items()}

    def _write(self, data: dict[str, SessionThreadMapping]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {key: value.model_dump(by_alias=True) for key, value in data.items()}
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def create(self, mapping: SessionThreadMapping) -> None:
        data = self._read()
        data[mapping.session_id] = mapping
        self._write(data)
        logger.debug("Stored thread mapping for session %s", mapping.session_id)

    def get(self, session_id: str) -> SessionThreadMapping | None:
        return self._read().get(session_id)

    def update(
        self,
        session_id: str,
        *,
        thread_ts: str | None = None,
        channel_id: str | None = None,
        status: ThreadStatus | None = None,
    ) -> SessionThreadMapping:
        data = self._read()
        existing = data.get(session_id)
        if existing is None:
            raise SessionNotFoundError(session_id)

        changes: dict[str, Any] = {"updated_at": datetime.now(UTC).isoformat()}
        if thread_ts is not None:
            changes["thread_ts"] = thread_ts
        if channel_id is not None:
            changes["channel_id"] = channel_id
        if status is not None:
            changes["status"] = status

        updated = existing.model_copy(update=changes)
        data[session_id] = updated
        self._write(data)
        return updated

    def delete(self, session_id: str) -> None:
        data = self._read()
        if data.pop(session_id, None) is None:
            return
        self._write(data)

    def list_all(self) -> Sequence[SessionThreadMapping]:
        return list(self._read().values())
