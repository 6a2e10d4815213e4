# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Tiered caching layer for ScoreSaber responses.

Lookups go through three tiers in order:

1. an in-process map, which answers unconditionally for the rest of the run;
2. the disk cache, whose entries are checked against the
   :class:`~data.staleness.StalenessPolicy` and deleted when stale;
3. the :class:`~data.transport.Transport`.

A body fetched from the network is decoded first and only written to the
tiers once decoding has succeeded.

Disk layout::

    <root>/leaderboards/<token>.json      response body, as received
    <root>/leaderboards/<token>.meta      {"created": ..., "digest": ...}

where ``<token>`` is :func:`data.query.encode_query` of the query.

Usage::

    from data.cache import DiskCache, TieredCache

    cache = TieredCache(DiskCache("/tmp/ss_cache"), transport, policy)
    body = cache.get(Query.build("player/123/full"))
"""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, TypeVar

from data.query import Query, decode_query, encode_query
from data.staleness import CacheEntry, Category, StalenessPolicy, categorize
from data.transport import Transport
from models import DeserializationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Disk tier
# ---------------------------------------------------------------------------

class DiskCache:
    """File-based store of raw response bodies.

    Args:
        root_dir: Path to the cache directory.  Created on first write.
            Defaults to ``data/cache/`` next to this file.
    """

    BODY_SUFFIX = ".json"
    META_SUFFIX = ".meta"

    def __init__(self, root_dir: str | Path | None = None) -> None:
        if root_dir is None:
            root_dir = Path(__file__).resolve().parent / "cache"
        self._root = Path(root_dir)

    # -- public API --------------------------------------------------------

    @property
    def root_dir(self) -> Path:
        """Return the root cache directory path."""
        return self._root

    def load(self, query: Query, category: Category | None = None) -> CacheEntry | None:
        """Read the entry for *query*, or ``None`` if there is none.

        An unreadable metadata sidecar is not fatal: the body file's mtime
        stands in for the creation time and the digest is unknown.
        """
        category = category or categorize(query)
        path = self._path_for(query, category)
        if not path.exists():
            return None
        try:
            body = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            logger.warning("Unreadable cache file %s, removing", path)
            self._unlink(query, category)
            return None

        created = path.stat().st_mtime
        digest = None
        meta_path = path.with_suffix(self.META_SUFFIX)
        if meta_path.exists():
            try:
                meta = json.loads(meta_path.read_text(encoding="utf-8"))
                created = float(meta.get("created", created))
                digest = meta.get("digest")
            except (json.JSONDecodeError, OSError, TypeError, ValueError,
                    AttributeError):
                logger.warning("Corrupt cache metadata %s, ignoring", meta_path)
        return CacheEntry(query=query, body=body, category=category,
                          created=created, digest=digest)

    def store(self, entry: CacheEntry) -> Path:
        """Write *entry*, replacing any previous one atomically.

        Returns:
            The :class:`Path` to the written body file.
        """
        path = self._path_for(entry.query, entry.category)
        path.parent.mkdir(parents=True, exist_ok=True)
        meta = {"created": entry.created, "digest": entry.digest}
        self._write_atomic(path, entry.body)
        self._write_atomic(path.with_suffix(self.META_SUFFIX),
                           json.dumps(meta, separators=(",", ":")))
        return path

    def invalidate(self, query: Query, category: Category | None = None) -> bool:
        """Remove a single cached entry.

        Returns:
            ``True`` if an entry was removed, ``False`` if it did not exist.
        """
        return self._unlink(query, category or categorize(query))

    def has(self, query: Query) -> bool:
        return self._path_for(query, categorize(query)).exists()

    def queries(self) -> Iterator[Query]:
        """Yield the query of every entry on disk."""
        if not self._root.exists():
            return
        for path in sorted(self._root.rglob(f"*{self.BODY_SUFFIX}")):
            try:
                yield decode_query(path.stem)
            except ValueError:
                logger.warning("Skipping foreign file in cache: %s", path)

    def clear(self) -> int:
        """Delete **all** cached entries by removing the cache directory.

        Returns:
            The number of cached bodies that were removed.
        """
        if not self._root.exists():
            return 0
        count = sum(1 for _ in self._root.rglob(f"*{self.BODY_SUFFIX}"))
        shutil.rmtree(self._root)
        return count

    def stats(self) -> dict[str, int]:
        """Return ``"files"`` (cached bodies) and ``"size_bytes"``."""
        if not self._root.exists():
            return {"files": 0, "size_bytes": 0}
        files = list(self._root.rglob(f"*{self.BODY_SUFFIX}"))
        total_size = sum(f.stat().st_size for f in files)
        return {"files": len(files), "size_bytes": total_size}

    # -- helpers -----------------------------------------------------------

    def _path_for(self, query: Query, category: Category) -> Path:
        return self._root / category.value / f"{encode_query(query)}{self.BODY_SUFFIX}"

    def _unlink(self, query: Query, category: Category) -> bool:
        path = self._path_for(query, category)
        existed = path.exists()
        path.unlink(missing_ok=True)
        path.with_suffix(self.META_SUFFIX).unlink(missing_ok=True)
        return existed

    @staticmethod
    def _write_atomic(path: Path, text: str) -> None:
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(text, encoding="utf-8")
        tmp_path.replace(path)  # atomic rename


# ---------------------------------------------------------------------------
# Tiered manager
# ---------------------------------------------------------------------------

@dataclass
class CacheStats:
    """Counters for one run.  ``fetches`` counts requests this cache sent;
    directory total probes are counted by the policy."""
    memory_hits: int = 0
    disk_hits: int = 0
    fetches: int = 0
    stale: int = 0


class TieredCache:
    """Memory, then disk, then network.

    Args:
        disk: The disk tier.
        transport: Network access for misses.
        policy: Freshness rules for disk entries.
    """

    def __init__(self, disk: DiskCache, transport: Transport,
                 policy: StalenessPolicy) -> None:
        self.disk = disk
        self.transport = transport
        self.policy = policy
        self.stats = CacheStats()
        self._memory: dict[str, str] = {}

    def get(self, query: Query, decode: Callable[[str], T] | None = None,
            *, digest: str | None = None) -> Any:
        """Resolve *query* through the tiers.

        Args:
            query: What to fetch.
            decode: Parser applied to the body.  Its result is returned.
                When it raises, nothing is written to any tier.
            digest: Current score digest, for score-history queries.

        Returns:
            ``decode(body)``, or the body text when *decode* is ``None``.

        Raises:
            TransportError: If the network tier is reached and fails.
            DeserializationError: If *decode* rejects a freshly fetched body.
        """
        decode = decode or _identity
        token = encode_query(query)

        body = self._memory.get(token)
        if body is not None:
            self.stats.memory_hits += 1
            return decode(body)

        category = categorize(query)
        if self.policy.persists(category):
            value = self._from_disk(query, category, token, decode, digest)
            if value is not _MISS:
                return value

        body = self.policy.take_probe(query)
        if body is None:
            body = self.transport.fetch(query)
            self.stats.fetches += 1
        value = decode(body)

        if self.policy.persists(category):
            self.disk.store(CacheEntry(query=query, body=body, category=category,
                                       created=self.policy.now(), digest=digest))
        self._memory[token] = body
        return value

    def _from_disk(self, query: Query, category: Category, token: str,
                   decode: Callable[[str], Any], digest: str | None) -> Any:
        entry = self.disk.load(query, category)
        if entry is None:
            return _MISS
        if not self.policy.is_fresh(entry, digest=digest):
            logger.debug("Stale %s entry for %s, deleting", category.value, query)
            self.stats.stale += 1
            self.disk.invalidate(query, category)
            return _MISS
        try:
            value = decode(entry.body)
        except DeserializationError as exc:
            logger.warning("Cached body for %s does not decode (%s), refetching",
                           query, exc)
            self.stats.stale += 1
            self.disk.invalidate(query, category)
            return _MISS
        logger.debug("Disk hit for %s", query)
        self.stats.disk_hits += 1
        self._memory[token] = entry.body
        return value

    def forget(self) -> None:
        """Drop the in-process tier."""
        self._memory.clear()

    def clear(self) -> int:
        """Empty both tiers and return how many disk entries were removed."""
        self.forget()
        return self.disk.clear()

    def renew_all(self, decoder_for: Callable[[Query], Callable[[str], Any]] | None = None) -> int:
        """Refetch every query currently on disk, replacing its entry.

        Entries whose category is no longer read back (roster pages, player
        profiles, leaderboard scores) are refreshed too, keeping the
        on-disk copy current.  Each body is decoded before it replaces the
        old entry.

        Args:
            decoder_for: Returns the parser for a query's body.  Defaults to
                plain JSON decoding.

        Returns:
            The number of entries renewed.

        Raises:
            TransportError: If a refetch fails.  Entries not yet renewed are
                left as they were.
            DeserializationError: If a refetched body does not decode.  The
                old entry for that query is kept.
        """
        renewed = 0
        for query in list(self.disk.queries()):
            category = categorize(query)
            previous = self.disk.load(query, category)
            body = self.transport.fetch(query)
            self.stats.fetches += 1
            decode = decoder_for(query) if decoder_for else _json_body
            decode(body)
            self.disk.store(CacheEntry(
                query=query, body=body, category=category, created=self.policy.now(),
                digest=previous.digest if previous else None,
            ))
            self._memory[encode_query(query)] = body
            renewed += 1
        logger.info("Renewed %d cached responses", renewed)
        return renewed


def _identity(body: str) -> str:
    return body


def _json_body(body: str) -> Any:
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise DeserializationError(f"Malformed JSON: {exc}") from exc


_MISS = object()
