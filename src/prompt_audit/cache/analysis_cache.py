"""On-disk cache of analysis results.

One JSON file per key under the cache root, plus ``.metadata.json`` recording
the instruction-template hash the entries were produced with. A different
hash invalidates the whole namespace. Writes go through a temporary file and
an atomic rename so readers never see a partial entry.
"""

import asyncio
from collections.abc import Callable, Mapping, Sequence
import contextlib
import dataclasses
import hashlib
import json
import logging
import os
from pathlib import Path
import tempfile
import time
from typing import Any
import unicodedata

from prompt_audit import constants
from prompt_audit.core.types import AnalysisResult, RulesConfig
from prompt_audit.exceptions import CacheError
from prompt_audit.providers.schemas import instruction_template_hash

log = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class CacheEntry:
    result: AnalysisResult
    created_at: float
    ttl_seconds: int
    template_hash: str
    provider: str = ""
    prompt_count: int = 0

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl_seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "result": self.result.to_dict(),
            "metadata": {
                "cachedAt": self.created_at,
                "ttlSeconds": self.ttl_seconds,
                "templateHash": self.template_hash,
                "provider": self.provider,
                "promptCount": self.prompt_count,
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CacheEntry":
        meta = data["metadata"]
        return cls(
            result=AnalysisResult.from_dict(data["result"]),
            created_at=float(meta["cachedAt"]),
            ttl_seconds=int(meta["ttlSeconds"]),
            template_hash=str(meta["templateHash"]),
            provider=str(meta.get("provider", "")),
            prompt_count=int(meta.get("promptCount", 0)),
        )


def _normalize_prompt(prompt: str) -> str:
    return unicodedata.normalize("NFC", prompt).strip()


class AnalysisCache:
    """Content-addressed result cache with TTL and template invalidation.

    File I/O runs in worker threads so the event loop is never blocked.
    """

    def __init__(
        self,
        root: str | os.PathLike[str],
        *,
        template_hash: str | None = None,
        default_ttl: int = constants.CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.root = Path(root)
        self.template_hash = template_hash or instruction_template_hash()
        self.default_ttl = default_ttl
        self._clock = clock

    def build_key(
        self,
        prompts: Sequence[str],
        provider: str,
        date: str,
        rules: RulesConfig | None = None,
    ) -> str:
        """Derive the key for a batch.

        Covers the normalized prompt text (order preserved), the provider
        identity, the date, the active rules and the template hash.
        """
        document = {
            "prompts": [_normalize_prompt(p) for p in prompts],
            "provider": provider,
            "date": date,
            "rules": {rule_id: rules[rule_id].to_dict() for rule_id in sorted(rules or {})},
            "templateHash": self.template_hash,
        }
        canonical = json.dumps(
            document, sort_keys=True, ensure_ascii=False, separators=(",", ":")
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    # --- Public async API ---

    async def get(self, key: str) -> AnalysisResult | None:
        """Return the cached result, or None on a miss, expiry or invalidation.

        Raises:
            CacheError: If the cache directory cannot be read.
        """
        entry = await asyncio.to_thread(self._get_entry, key)
        return entry.result if entry is not None else None

    async def set(
        self,
        key: str,
        result: AnalysisResult,
        *,
        ttl: int | None = None,
        provider: str = "",
    ) -> None:
        """Store ``result`` under ``key``.

        Raises:
            CacheError: If the entry cannot be written.
        """
        entry = CacheEntry(
            result=result,
            created_at=self._clock(),
            ttl_seconds=ttl if ttl is not None else self.default_ttl,
            template_hash=self.template_hash,
            provider=provider,
            prompt_count=result.stats.total_prompts,
        )
        await asyncio.to_thread(self._put_entry, key, entry)

    async def clear(self) -> int:
        """Remove every entry. Returns the number of entries removed."""
        return await asyncio.to_thread(self._clear_entries)

    async def cleanup_expired(self) -> int:
        """Remove expired and unreadable entries. Returns how many were removed."""
        return await asyncio.to_thread(self._cleanup_expired)

    # --- Synchronous internals (run in worker threads) ---

    def _entry_path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    @property
    def _metadata_path(self) -> Path:
        return self.root / constants.CACHE_METADATA_FILE

    def _entry_paths(self) -> list[Path]:
        if not self.root.is_dir():
            return []
        return [
            p
            for p in self.root.glob("*.json")
            if p.name != constants.CACHE_METADATA_FILE
        ]

    def _write_json(self, path: Path, data: Mapping[str, Any]) -> None:
        tmp: Path | None = None
        try:
            fd, name = tempfile.mkstemp(
                dir=path.parent, prefix=f"{path.stem}.", suffix=".tmp"
            )
            tmp = Path(name)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            tmp.replace(path)
        except OSError as e:
            if tmp is not None:
                with contextlib.suppress(OSError):
                    tmp.unlink(missing_ok=True)
            raise CacheError(f"Failed to write cache file {path}: {e}") from e

    def _ensure_namespace(self) -> None:
        """Clear every entry if they were produced under another template hash."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"Cannot create cache directory {self.root}: {e}") from e

        stored_hash = None
        try:
            metadata = json.loads(self._metadata_path.read_text(encoding="utf-8"))
            stored_hash = metadata.get("templateHash")
        except FileNotFoundError:
            pass
        except (OSError, ValueError, AttributeError) as e:
            log.debug("Unreadable cache metadata, resetting: %s", e)

        if stored_hash == self.template_hash:
            return

        if stored_hash is not None:
            log.debug("Instruction template changed; invalidating analysis cache")
        removed = self._clear_entries()
        if removed:
            log.debug("Removed %d stale cache entries", removed)
        self._write_json(
            self._metadata_path,
            {"templateHash": self.template_hash, "lastUpdated": self._clock()},
        )

    def _discard(self, path: Path) -> None:
        """Best-effort removal of an unusable entry; a miss either way."""
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            log.debug("Could not remove cache entry %s: %s", path.name, e)

    def _get_entry(self, key: str) -> CacheEntry | None:
        self._ensure_namespace()
        path = self._entry_path(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheError(f"Failed to read cache file {path}: {e}") from e

        try:
            entry = CacheEntry.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            log.debug("Discarding corrupt cache entry %s: %s", path.name, e)
            self._discard(path)
            return None

        if entry.template_hash != self.template_hash:
            self._discard(path)
            return None
        if entry.is_expired(self._clock()):
            log.debug("Cache entry %s expired", path.name)
            self._discard(path)
            return None
        return entry

    def _put_entry(self, key: str, entry: CacheEntry) -> None:
        self._ensure_namespace()
        self._write_json(self._entry_path(key), entry.to_dict())

    def _clear_entries(self) -> int:
        removed = 0
        try:
            for path in self._entry_paths():
                path.unlink(missing_ok=True)
                removed += 1
        except OSError as e:
            raise CacheError(f"Failed to clear cache at {self.root}: {e}") from e
        return removed

    def _cleanup_expired(self) -> int:
        now = self._clock()
        removed = 0
        try:
            for path in self._entry_paths():
                try:
                    entry = CacheEntry.from_dict(
                        json.loads(path.read_text(encoding="utf-8"))
                    )
                    stale = (
                        entry.is_expired(now)
                        or entry.template_hash != self.template_hash
                    )
                except (ValueError, KeyError, TypeError):
                    stale = True
                if stale:
                    path.unlink(missing_ok=True)
                    removed += 1
        except OSError as e:
            raise CacheError(f"Failed to clean cache at {self.root}: {e}") from e
        return removed
