"""Release-hosting backend.

``ReleaseHost`` is the seam the publisher talks to; ``GitHubReleaseHost``
implements it against the GitHub REST API with httpx. Releases are always
created as drafts and never promoted here.
"""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Protocol, runtime_checkable

import httpx

from shipwright.core.errors import PublicationError
from shipwright.models.release import Release

logger = logging.getLogger(__name__)

_API_VERSION = "2022-11-28"


@runtime_checkable
class ReleaseHost(Protocol):
    """Protocol for release-hosting backends."""

    def create_draft_release(
        self, tag: str, name: str, version: str, assets: list[Path]
    ) -> Release:
        ...


def make_http_client(
    *,
    token: str,
    base_url: str,
    timeout: httpx.Timeout | None = None,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    t = timeout or httpx.Timeout(connect=10.0, read=120.0, write=300.0, pool=10.0)
    return httpx.Client(
        base_url=base_url,
        timeout=t,
        follow_redirects=True,
        headers={
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "X-GitHub-Api-Version": _API_VERSION,
            "User-Agent": "shipwright/0.1",
        },
        transport=transport,
    )


def _check(response: httpx.Response, what: str) -> None:
    if response.is_success:
        return
    snippet = response.text[:300] if response.text else ""
    raise PublicationError(
        f"{what} failed: HTTP {response.status_code} for "
        f"{response.request.method} {response.request.url}"
        + (f" (body: {snippet})" if snippet else "")
    )


class GitHubReleaseHost:
    """Creates draft GitHub releases and uploads their assets.

    Parameters
    ----------
    repository:
        ``owner/name`` slug.
    token:
        API token with ``contents: write``.
    api_url:
        REST API base URL.
    transport:
        Optional httpx transport, e.g. ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        repository: str,
        token: str,
        *,
        api_url: str = "https://api.github.com",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not repository or "/" not in repository:
            raise PublicationError(f"invalid repository slug {repository!r}")
        self._repository = repository
        self._client = make_http_client(token=token, base_url=api_url, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GitHubReleaseHost:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def create_draft_release(
        self, tag: str, name: str, version: str, assets: list[Path]
    ) -> Release:
        try:
            response = self._client.post(
                f"/repos/{self._repository}/releases",
                json={"tag_name": tag, "name": name, "draft": True},
            )
        except httpx.HTTPError as exc:
            raise PublicationError(f"creating release {tag} failed: {exc}") from exc
        _check(response, f"creating release {tag}")

        body = response.json()
        if body.get("draft") is not True:
            raise PublicationError(f"release {tag} was not created as a draft")
        upload_url = str(body["upload_url"]).split("{", 1)[0]
        draft_id = body.get("id")
        logger.info("created draft release %s (id %s)", tag, draft_id)

        uploaded: list[str] = []
        for asset in assets:
            try:
                self._upload(upload_url, asset)
            except PublicationError as exc:
                logger.error(
                    "draft release %s (id %s) left with %d of %d assets",
                    tag, draft_id, len(uploaded), len(assets),
                )
                raise PublicationError(
                    f"{exc}; partial draft release {tag} (id {draft_id}) needs cleanup"
                ) from exc
            uploaded.append(asset.name)
            logger.info("uploaded release asset %s", asset.name)

        return Release(
            version=version,
            tag_name=tag,
            assets=uploaded,
            release_id=draft_id,
            html_url=body.get("html_url", ""),
        )

    def _upload(self, upload_url: str, asset: Path) -> None:
        content_type = mimetypes.guess_type(asset.name)[0] or "application/octet-stream"
        try:
            r = self._client.post(
                upload_url,
                params={"name": asset.name},
                content=asset.read_bytes(),
                headers={"Content-Type": content_type},
            )
        except httpx.HTTPError as exc:
            raise PublicationError(f"uploading {asset.name} failed: {exc}") from exc
        _check(r, f"uploading {asset.name}")
