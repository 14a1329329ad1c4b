"""Store backed by the authoring app's REST API.

Endpoints:
- GET   /api/projects/{id}           -> {"project": {"title", "briefing", "messages": [...]}}
- POST  /api/projects/{id}/messages  {"content", "role": "USER" | "AI"}
- PATCH /api/projects/{id}           {"id", "title", "briefing"}

The API spells briefing keys in camelCase and names the assistant role
"AI"; both are translated here.
"""

import logging
import re
from datetime import datetime

import httpx

from ..core import ASSISTANT, USER, ProjectMetadata, StoredTurnRecord
from ..errors import StoreError
from ..store import TurnStore

logger = logging.getLogger(__name__)

ROLE_TO_API = {USER: "USER", ASSISTANT: "AI"}
ROLE_FROM_API = {v: k for k, v in ROLE_TO_API.items()}


class HttpStore(TurnStore):
    """Talks to a remote store over HTTP."""

    name = "http"

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)

    async def create_turn_record(self, conversation_id: str, record: StoredTurnRecord) -> StoredTurnRecord:
        payload = {"content": record.content, "role": ROLE_TO_API[record.role]}
        data = await self._request("POST", f"/api/projects/{conversation_id}/messages", json=payload)
        body = _expect_object(data or {}, f"POST /api/projects/{conversation_id}/messages")
        message = _expect_object(body.get("message") or {}, "stored message")
        return StoredTurnRecord(
            role=record.role,
            content=record.content,
            id=str(message["id"]) if message.get("id") is not None else None,
            created_at=_parse_timestamp(message.get("createdAt")) or record.created_at,
        )

    async def update_metadata(self, project_id: str, metadata: ProjectMetadata) -> None:
        payload = {
            "id": project_id,
            "title": metadata.title,
            "briefing": {_to_camel(k): v for k, v in metadata.briefing.items()},
        }
        await self._request("PATCH", f"/api/projects/{project_id}", json=payload)

    async def load_project(self, project_id: str) -> tuple[list[StoredTurnRecord], ProjectMetadata]:
        data = await self._request("GET", f"/api/projects/{project_id}")
        project = _expect_object(data or {}, f"GET /api/projects/{project_id}").get("project")
        if not project:
            raise StoreError(f"No project data received for {project_id}")
        project = _expect_object(project, f"project {project_id}")

        records = []
        for msg in project.get("messages") or []:
            if not isinstance(msg, dict):
                logger.warning("Skipping malformed message %r", msg)
                continue
            role = ROLE_FROM_API.get(msg.get("role"))
            if role is None:
                logger.warning("Skipping message %s with unknown role %r", msg.get("id"), msg.get("role"))
                continue
            records.append(StoredTurnRecord(
                role=role,
                content=msg.get("content") or "",
                id=str(msg["id"]) if msg.get("id") is not None else None,
                created_at=_parse_timestamp(msg.get("createdAt")),
            ))

        briefing = {_to_snake(k): v for k, v in (project.get("briefing") or {}).items()}
        metadata = ProjectMetadata.from_dict({"title": project.get("title"), "briefing": briefing})
        return records, metadata

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    # ── Private helpers ──────────────────────────────────────────────

    async def _request(self, method: str, url: str, **kwargs) -> dict | None:
        try:
            resp = await self.client.request(method, url, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {url} failed: {e}") from e
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise StoreError(f"{method} {url} returned invalid JSON") from e


def _expect_object(value, what: str) -> dict:
    if not isinstance(value, dict):
        raise StoreError(f"{what}: expected a JSON object, got {type(value).__name__}")
    return value


def _to_camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _to_snake(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
