from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

SCHEMA_VERSION = 1


def generate_session_id() -> str:
    return f"session-{uuid.uuid4().hex[:8]}"


def now_iso() -> str:
    """Return a current UTC timestamp in ISO-8601 format."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SessionMetadata:
    """
    A saved explorer session: the instance-store snapshot plus provenance.

    - session_id: stable identifier
    - schema_version: version of this metadata schema (start at 1)
    - app_version: sc_explorer version that wrote it
    - dataset_name: dataset the panels were configured against
    - panels: InstanceStore.snapshot() output, in store order
    - label: optional human-readable label
    """

    session_id: str
    schema_version: int = SCHEMA_VERSION
    app_version: str = "0.0.0-dev"
    dataset_name: Optional[str] = None

    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    panels: List[Dict[str, Any]] = field(default_factory=list)
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SessionMetadata:
        return cls(
            session_id=data["session_id"],
            schema_version=data.get("schema_version", SCHEMA_VERSION),
            app_version=data.get("app_version", "0.0.0-dev"),
            dataset_name=data.get("dataset_name"),
            created_at=data.get("created_at", now_iso()),
            updated_at=data.get("updated_at", now_iso()),
            panels=[dict(p) for p in data.get("panels") or []],
            label=data.get("label"),
        )


def new_session_metadata(
        *,
        session_id: str,
        app_version: str,
        dataset_name: Optional[str] = None,
        panels: Optional[List[Dict[str, Any]]] = None,
) -> SessionMetadata:
    """
    Create a fresh SessionMetadata.
    """
    now = now_iso()
    return SessionMetadata(
        session_id=session_id,
        app_version=app_version,
        dataset_name=dataset_name,
        created_at=now,
        updated_at=now,
        panels=list(panels or []),
    )


def touch_session(session: SessionMetadata) -> None:
    """
    Update the 'updated_at' timestamp after mutating the session.
    """
    session.updated_at = now_iso()
