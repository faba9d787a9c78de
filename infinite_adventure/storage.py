"""Save stores — where finished turns are persisted.

Every store implements a single upsert keyed by session id; the row for a
session is replaced wholesale on each finished turn. Nothing in the game reads
saves back.

    SupabaseSaveStore  — PostgREST upsert into a hosted table (default
                         table "game_saves", conflict key "session_id").
    JsonFileSaveStore  — one JSON file per session under a base directory:

        {base}/
          saves/
            {session_id}.json

    NullSaveStore      — persistence disabled; saves are dropped.

The session controller schedules saves in the background and swallows any
StorageError they raise, so a broken store never blocks play.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

import httpx

from infinite_adventure.models import PersistedSave

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol — every save store must match this signature
# ---------------------------------------------------------------------------

class SaveStore(Protocol):
    async def upsert(self, save: PersistedSave) -> None: ...


# ---------------------------------------------------------------------------
# SupabaseSaveStore — hosted row store over PostgREST
# ---------------------------------------------------------------------------

class SupabaseSaveStore:
    """Upserts save rows through the Supabase REST endpoint.

    Args:
        url:      Project URL, e.g. "https://xyz.supabase.co".
        api_key:  Anon (or service) key, sent as apikey + bearer token.
        table:    Table name. Defaults to "game_saves".
        timeout:  HTTP timeout in seconds. Defaults to 10.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        table: str = "game_saves",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = url.rstrip("/")
        self._api_key = api_key
        self._table = table
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Prefer": "resolution=merge-duplicates,return=minimal",
        }

    async def upsert(self, save: PersistedSave) -> None:
        url = f"{self._base_url}/rest/v1/{self._table}"
        logger.debug("upsert save session=%s table=%s", save.session_id, self._table)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    url,
                    params={"on_conflict": "session_id"},
                    json=save.to_row(),
                    headers=self._headers(),
                )
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise StorageError(f"Cannot connect to save store at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise StorageError(
                f"Save store returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise StorageError(f"Save store timed out after {self._timeout}s") from e


# ---------------------------------------------------------------------------
# JsonFileSaveStore — flat JSON files, one per session
# ---------------------------------------------------------------------------

class JsonFileSaveStore:
    def __init__(self, base_path: Path) -> None:
        self._saves = base_path / "saves"
        self._saves.mkdir(parents=True, exist_ok=True)

    def _save_file(self, session_id: str) -> Path:
        return self._saves / f"{session_id}.json"

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, indent=2))

    async def upsert(self, save: PersistedSave) -> None:
        """Replace the row for this session id."""
        try:
            self._write_json(self._save_file(str(save.session_id)), save.to_row())
        except OSError as e:
            raise StorageError(f"Cannot write save for {save.session_id}: {e}") from e


# ---------------------------------------------------------------------------
# NullSaveStore — persistence disabled
# ---------------------------------------------------------------------------

class NullSaveStore:
    async def upsert(self, save: PersistedSave) -> None:
        logger.debug("save dropped session=%s", save.session_id)


def create_save_store(config: dict[str, Any]) -> SaveStore:
    """Build the save store selected by config["save_backend"]."""
    backend = config["save_backend"]
    if backend == "supabase":
        return SupabaseSaveStore(
            config["supabase_url"],
            config["supabase_anon_key"],
            table=config["save_table"],
        )
    if backend == "file":
        return JsonFileSaveStore(Path(config["data_dir"]))
    if backend == "none":
        return NullSaveStore()
    raise ValueError(f"Unknown save backend: {backend!r}")


# ---------------------------------------------------------------------------
# StorageError — raised by stores for all write failures
# ---------------------------------------------------------------------------

class StorageError(RuntimeError):
    """Raised when a save cannot be written."""
