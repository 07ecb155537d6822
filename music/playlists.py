from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from db.access import run_db
from misc.errors import ProviderError
from misc.errors import StoreError
from music.store import fetch_playlist_binding_sync
from music.store import fetch_submissions_sync
from music.store import insert_playlist_binding_sync
from music.youtube import PlaylistEntry
from music.youtube import extract_video_id
from music.youtube import playlist_url


class PlaylistProvider(Protocol):
    async def create_playlist(self, title: str, description: str) -> str: ...

    async def list_items(self, playlist_id: str, page_token: str | None = None) -> tuple[list[PlaylistEntry], str | None]: ...

    async def insert_item(self, playlist_id: str, video_id: str) -> None: ...

    async def delete_item(self, item_id: str) -> None: ...


@dataclass(frozen=True, slots=True)
class PlaylistSelector:
    """Which submissions a playlist mirrors: a month, optionally one day (0 = all) and one member ("" = everyone)."""

    month_label: str
    day: int = 0
    user_id: str = ""
    owner_name: str = ""

    def title(self, community: str) -> str:
        out = f"{community} Music Month: {self.month_label}"
        if self.day:
            out += f" Day {self.day}"
        if self.user_id:
            out += f" - {self.owner_name or 'Member'}'s picks"
        return out

    def description(self, community: str) -> str:
        if self.day:
            scope = f"posted on day {self.day} of {self.month_label}'s music month in {community}"
        else:
            scope = f"posted during {self.month_label}'s music month in {community}"
        if self.user_id:
            return f"All the songs {self.owner_name or 'this member'} {scope}"
        return f"All the songs {scope}"


@dataclass(slots=True)
class ReconcileResult:
    selector: PlaylistSelector
    playlist_id: str | None = None
    created: bool = False
    submissions: int = 0
    inserted: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    unmatched_songs: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return self.submissions == 0

    @property
    def url(self) -> str | None:
        return playlist_url(self.playlist_id) if self.playlist_id else None


class PlaylistReconciler:
    """
    Converges a YouTube playlist onto the stored submissions for a selector.

    Each run re-reads submissions and the full playlist, inserts missing
    videos, then removes items no submission accounts for (duplicates
    included). Any provider failure aborts the run; whatever already
    changed stays and the next run picks up from there.
    """

    def __init__(self, *, db_lock, db_conn, provider: PlaylistProvider | None, community_name: str = "Speedfriends") -> None:
        self.db_lock = db_lock
        self.db_conn = db_conn
        self.provider = provider
        self.community_name = community_name

    async def _resolve_playlist(self, selector: PlaylistSelector, result: ReconcileResult) -> str:
        key = {"month_label": selector.month_label, "day": selector.day, "user_id": selector.user_id}
        existing = await run_db(self.db_lock, fetch_playlist_binding_sync, self.db_conn, **key)
        if existing:
            return existing

        created_id = await self.provider.create_playlist(
            selector.title(self.community_name),
            selector.description(self.community_name),
        )
        try:
            bound_id = await run_db(
                self.db_lock,
                insert_playlist_binding_sync,
                self.db_conn,
                playlist_id=created_id,
                **key,
            )
        except StoreError:
            print(f"[MUSIC] action=bind result=error orphan_playlist={created_id} key={key}")
            raise
        if bound_id != created_id:
            print(f"[MUSIC] action=bind result=lost_race orphan_playlist={created_id} bound={bound_id} key={key}")
        else:
            result.created = True
            print(f"[MUSIC] action=bind result=ok playlist={created_id} key={key}")
        return bound_id

    async def _fetch_membership(self, playlist_id: str) -> list[PlaylistEntry]:
        entries: list[PlaylistEntry] = []
        seen_tokens: set[str] = set()
        page_token: str | None = None
        while True:
            page, page_token = await self.provider.list_items(playlist_id, page_token)
            entries.extend(page)
            if not page_token:
                return entries
            # A partial membership would make the diff insert duplicates and miss deletes.
            if page_token in seen_tokens:
                raise ProviderError(f"playlistItems.list repeated page token {page_token!r}")
            seen_tokens.add(page_token)

    async def reconcile(self, selector: PlaylistSelector) -> ReconcileResult:
        """Raises StoreError or ProviderError; the caller turns those into a reply."""
        result = ReconcileResult(selector=selector)
        submissions = await run_db(
            self.db_lock,
            fetch_submissions_sync,
            self.db_conn,
            month_label=selector.month_label,
            user_id=selector.user_id or None,
            day=selector.day or None,
        )
        result.submissions = len(submissions)
        if not submissions:
            return result

        wanted: list[str] = []
        for row in submissions:
            video_id = extract_video_id(row["song"])
            if video_id is None:
                result.unmatched_songs.append(row["song"])
            elif video_id not in wanted:
                wanted.append(video_id)

        playlist_id = await self._resolve_playlist(selector, result)
        result.playlist_id = playlist_id
        current = await self._fetch_membership(playlist_id)

        present = {entry.video_id for entry in current}
        for video_id in wanted:
            if video_id not in present:
                await self.provider.insert_item(playlist_id, video_id)
                result.inserted.append(video_id)

        wanted_set = set(wanted)
        kept: set[str] = set()
        for entry in current:
            if entry.video_id in wanted_set and entry.video_id not in kept:
                kept.add(entry.video_id)
                continue
            await self.provider.delete_item(entry.item_id)
            result.deleted.append(entry.video_id)

        print(
            f"[MUSIC] action=reconcile result=ok playlist={playlist_id} label={selector.month_label} "
            f"day={selector.day} user={selector.user_id or '*'} inserted={len(result.inserted)} "
            f"deleted={len(result.deleted)} unmatched={len(result.unmatched_songs)}"
        )
        return result
