"""GitHub contents-API sync backend.

A thin HTTP client that stores the serialized collection as a single file
in a GitHub repository.  The blob ``sha`` returned by the API is the
version token; writes that carry a stale ``sha`` are rejected by GitHub and
surface here as :class:`~studynotes.exceptions.VersionConflictError`.

Routes used
-----------
GET  /repos/{owner}/{repo}/contents/{path}?ref={branch}   – read content + sha
PUT  /repos/{owner}/{repo}/contents/{path}                – write (``sha`` = CAS token)

Content travels base64-encoded.  When a credential is configured the
client sends ``Authorization: token <credential>``.

Environment variables (direct kwargs take precedence):
    STUDYNOTES_GITHUB_API   – API base URL (default: https://api.github.com)
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from typing import Any
from urllib.parse import quote

import httpx

from studynotes.collection import RemoteConfig
from studynotes.exceptions import MalformedPayloadError, TransportError, VersionConflictError
from studynotes.sync.base import RemoteObject

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"


def encode_content(content: bytes) -> str:
    return base64.b64encode(content).decode("ascii")


def decode_content(encoded: str) -> bytes:
    """Reverse :func:`encode_content`; GitHub wraps its base64 at 60 columns."""
    try:
        return base64.b64decode("".join(encoded.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedPayloadError(f"Remote content is not valid base64: {exc}") from exc


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase


class GitHubContentsClient:
    """HTTP sync backend backed by the GitHub repository contents API."""

    def __init__(
        self,
        api_url: str | None = None,
        *,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = (api_url or os.getenv("STUDYNOTES_GITHUB_API", DEFAULT_API_URL)).rstrip("/")
        self._client = httpx.Client(
            base_url=self._base_url,
            headers={"Accept": "application/vnd.github+json"},
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def _contents_url(address: RemoteConfig) -> str:
        owner = quote(address.owner, safe="")
        repo = quote(address.repo, safe="")
        path = quote(address.path.lstrip("/"), safe="/")
        return f"/repos/{owner}/{repo}/contents/{path}"

    @staticmethod
    def _auth_headers(address: RemoteConfig) -> dict[str, str]:
        return {"Authorization": f"token {address.credential}"} if address.credential else {}

    def _send(self, method: str, address: RemoteConfig, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(
                method,
                self._contents_url(address),
                headers=self._auth_headers(address),
                **kwargs,
            )
        except httpx.HTTPError as exc:
            logger.error("GitHub %s %s failed: %s", method, address.path, exc)
            raise TransportError(f"GitHub {method} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # SyncBackend
    # ------------------------------------------------------------------

    def fetch(self, address: RemoteConfig) -> RemoteObject | None:
        r = self._send("GET", address, params={"ref": address.branch})
        if r.status_code == 404:
            logger.info("No remote file at %s/%s:%s", address.repo, address.branch, address.path)
            return None
        if not r.is_success:
            raise TransportError(
                f"GitHub GET failed: {r.status_code} {_error_message(r)}",
                status=r.status_code,
            )
        try:
            meta = r.json()
            encoded, sha = meta["content"], meta["sha"]
        except (ValueError, KeyError, TypeError) as exc:
            raise MalformedPayloadError(f"Unexpected GitHub response: {exc}") from exc
        return RemoteObject(content=decode_content(encoded), version=str(sha))

    def put(
        self,
        address: RemoteConfig,
        content: bytes,
        message: str,
        expected_version: str | None = None,
    ) -> str:
        body: dict[str, Any] = {
            "message": message,
            "branch": address.branch,
            "content": encode_content(content),
        }
        if expected_version:
            body["sha"] = expected_version

        r = self._send("PUT", address, json=body)
        if r.status_code == 409 or (r.status_code == 422 and "sha" in _error_message(r)):
            logger.warning("GitHub rejected write to %s: stale version %s", address.path, expected_version)
            raise VersionConflictError(
                f"Remote changed since version {expected_version or '(none)'}: {_error_message(r)}",
                expected=expected_version,
            )
        if not r.is_success:
            raise TransportError(
                f"GitHub PUT failed: {r.status_code} {_error_message(r)}",
                status=r.status_code,
            )
        try:
            return str(r.json()["content"]["sha"])
        except (ValueError, KeyError, TypeError) as exc:
            raise MalformedPayloadError(f"Unexpected GitHub response: {exc}") from exc

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GitHubContentsClient":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
