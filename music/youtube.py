from __future__ import annotations

import asyncio
import json
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs
from urllib.parse import urlparse

import httpx

from misc.errors import ProviderError


YOUTUBE_API_BASE_URL = "https://www.googleapis.com/youtube/v3"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
PLAYLIST_URL_TEMPLATE = "https://youtube.com/playlist?list={playlist_id}"

REQUEST_TIMEOUT = 20  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}
PAGE_SIZE = 50

YOUTUBE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
_YOUTUBE_LINK_RE = re.compile(
    r"(?<![A-Za-z0-9.-])(?:https?://)?(?:[A-Za-z0-9-]+\.)*(?:youtube\.com|youtu\.be)/[^\s<>]+",
    re.IGNORECASE,
)


def extract_video_id(song: str) -> str | None:
    """
    Pull a YouTube video id out of free submission text.

    Recognises youtube.com links carrying ``v=<id>`` and ``youtu.be/<id>``
    short links, with or without a scheme. Anything else yields None.
    """
    for match in _YOUTUBE_LINK_RE.finditer(str(song or "")):
        link = match.group(0).rstrip(").,!>")
        if "://" not in link:
            link = f"https://{link}"
        parsed = urlparse(link)
        host = (parsed.hostname or "").lower()
        video_id: str | None = None
        if host == "youtu.be" or host.endswith(".youtu.be"):
            video_id = (parsed.path or "").strip("/").split("/", 1)[0] or None
        elif host == "youtube.com" or host.endswith(".youtube.com"):
            video_id = (parse_qs(parsed.query or "").get("v") or [None])[0]
        if video_id and YOUTUBE_ID_RE.fullmatch(video_id):
            return video_id
    return None


def playlist_url(playlist_id: str) -> str:
    return PLAYLIST_URL_TEMPLATE.format(playlist_id=playlist_id)


@dataclass(frozen=True, slots=True)
class PlaylistEntry:
    item_id: str
    video_id: str


class YouTubePlaylistClient:
    """
    Minimal YouTube Data API v3 client for the playlist calls the bot needs.

    Authenticates with a stored OAuth refresh token; access tokens are
    refreshed lazily and again once if the API answers 401.
    """

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        token_url: str = GOOGLE_TOKEN_URL,
        privacy_status: str = "unlisted",
        http_client: httpx.AsyncClient | None = None,
        backoff_factor: float = BACKOFF_FACTOR,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.token_url = token_url or GOOGLE_TOKEN_URL
        self.privacy_status = str(privacy_status or "unlisted").strip().lower()
        self.backoff_factor = max(0.0, float(backoff_factor))
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(REQUEST_TIMEOUT))
        self._access_token: str | None = None
        self._access_token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    @classmethod
    def from_files(
        cls,
        *,
        client_secret_path: str,
        token_path: str | None = None,
        refresh_token: str | None = None,
        privacy_status: str = "unlisted",
    ) -> "YouTubePlaylistClient | None":
        secret_file = Path(client_secret_path)
        if not secret_file.is_file():
            print(f"[YouTube] client secret not found at {secret_file}; playlists disabled")
            return None
        try:
            secret_doc = json.loads(secret_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            print(f"[YouTube] could not read client secret {secret_file}: {e}")
            return None
        if not isinstance(secret_doc, dict):
            print(f"[YouTube] client secret {secret_file} is not a JSON object; playlists disabled")
            return None
        creds = secret_doc.get("installed") or secret_doc.get("web") or secret_doc
        client_id = str(creds.get("client_id") or "").strip()
        client_secret = str(creds.get("client_secret") or "").strip()
        token_url = str(creds.get("token_uri") or GOOGLE_TOKEN_URL).strip()
        if not client_id or not client_secret:
            print("[YouTube] client secret is missing client_id/client_secret; playlists disabled")
            return None

        token = str(refresh_token or "").strip()
        if not token and token_path:
            token_file = Path(token_path)
            if token_file.is_file():
                try:
                    token_doc = json.loads(token_file.read_text(encoding="utf-8"))
                    if isinstance(token_doc, dict):
                        token = str(token_doc.get("refresh_token") or "").strip()
                except (OSError, ValueError) as e:
                    print(f"[YouTube] could not read token file {token_file}: {e}")
        if not token:
            print("[YouTube] no refresh token configured; playlists disabled")
            return None

        return cls(
            client_id=client_id,
            client_secret=client_secret,
            refresh_token=token,
            token_url=token_url,
            privacy_status=privacy_status,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                if attempt >= MAX_RETRIES:
                    raise ProviderError(f"{method} {url} failed: {e}") from e
                await asyncio.sleep(self.backoff_factor * (2 ** (attempt - 1)))
                continue
            if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                print(f"[YouTube] retrying {method} status={response.status_code} attempt={attempt}")
                await asyncio.sleep(self.backoff_factor * (2 ** (attempt - 1)))
                continue
            return response
        raise ProviderError(f"{method} {url} retry loop exhausted")

    async def _refresh_access_token(self) -> str:
        response = await self._send(
            "POST",
            self.token_url,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": self.refresh_token,
                "grant_type": "refresh_token",
            },
        )
        if not response.is_success:
            raise ProviderError("token refresh failed", status_code=response.status_code)
        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError("token refresh returned invalid JSON") from e
        access_token = str(payload.get("access_token") or "")
        if not access_token:
            raise ProviderError("token refresh returned no access_token")
        expires_in = int(payload.get("expires_in") or 3600)
        self._access_token = access_token
        # Refresh a minute early so a token never expires mid-request.
        self._access_token_expires_at = time.monotonic() + max(0, expires_in - 60)
        return access_token

    async def _token(self, *, force_refresh: bool = False) -> str:
        async with self._token_lock:
            if force_refresh or not self._access_token or time.monotonic() >= self._access_token_expires_at:
                return await self._refresh_access_token()
            return self._access_token

    async def _api(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{YOUTUBE_API_BASE_URL}/{path}"
        response: httpx.Response | None = None
        for force_refresh in (False, True):
            token = await self._token(force_refresh=force_refresh)
            response = await self._send(
                method,
                url,
                params=params,
                json=body,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            )
            if response.status_code != 401:
                break

        assert response is not None
        if not response.is_success:
            detail = ""
            try:
                detail = str((response.json().get("error") or {}).get("message") or "")
            except ValueError:
                detail = response.text[:200]
            print(f"[YouTube] {operation} failed status={response.status_code} detail={detail}")
            raise ProviderError(f"{operation} failed: {detail or response.status_code}", status_code=response.status_code)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"{operation} returned invalid JSON") from e

    async def create_playlist(self, title: str, description: str) -> str:
        payload = await self._api(
            "POST",
            "playlists",
            operation="playlists.insert",
            params={"part": "snippet,status"},
            body={
                "snippet": {"title": title, "description": description},
                "status": {"privacyStatus": self.privacy_status},
            },
        )
        playlist_id = str(payload.get("id") or "")
        if not playlist_id:
            raise ProviderError("playlists.insert returned no id")
        return playlist_id

    async def list_items(self, playlist_id: str, page_token: str | None = None) -> tuple[list[PlaylistEntry], str | None]:
        params = {"part": "snippet", "playlistId": playlist_id, "maxResults": PAGE_SIZE}
        if page_token:
            params["pageToken"] = page_token
        payload = await self._api("GET", "playlistItems", operation="playlistItems.list", params=params)
        entries: list[PlaylistEntry] = []
        for item in payload.get("items") or []:
            video_id = (((item.get("snippet") or {}).get("resourceId") or {}).get("videoId")) or ""
            if item.get("id") and video_id:
                entries.append(PlaylistEntry(item_id=str(item["id"]), video_id=str(video_id)))
        return (entries, payload.get("nextPageToken") or None)

    async def insert_item(self, playlist_id: str, video_id: str) -> None:
        await self._api(
            "POST",
            "playlistItems",
            operation="playlistItems.insert",
            params={"part": "snippet"},
            body={
                "snippet": {
                    "playlistId": playlist_id,
                    "resourceId": {"kind": "youtube#video", "videoId": video_id},
                }
            },
        )

    async def delete_item(self, item_id: str) -> None:
        await self._api("DELETE", "playlistItems", operation="playlistItems.delete", params={"id": item_id})
