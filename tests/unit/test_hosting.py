"""Tests for the GitHub release-hosting backend, against httpx.MockTransport."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from shipwright.core.errors import PublicationError
from shipwright.release.hosting import GitHubReleaseHost, ReleaseHost

API = "https://api.example.test"


class _GitHub:
    """Records requests and answers like the releases API."""

    def __init__(self, *, draft: bool = True, fail_upload: str | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.draft = draft
        self.fail_upload = fail_upload

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/repos/example/tool/releases":
            body = json.loads(request.content)
            return httpx.Response(
                201,
                json={
                    "id": 7,
                    "draft": self.draft,
                    "tag_name": body["tag_name"],
                    "html_url": "https://example.test/releases/7",
                    "upload_url": f"{API}/uploads/7/assets{{?name,label}}",
                },
            )
        if request.url.path == "/uploads/7/assets":
            if request.url.params["name"] == self.fail_upload:
                return httpx.Response(422, json={"message": "already_exists"})
            return httpx.Response(201, json={"name": request.url.params["name"]})
        return httpx.Response(404)


@pytest.fixture
def assets(tmp_dir: Path) -> list[Path]:
    out = []
    for name in ("fossa_1.2.3_linux_amd64.zip", "fossa_1.2.3_linux_amd64.zip.sha256"):
        path = tmp_dir / name
        path.write_bytes(name.encode())
        out.append(path)
    return out


def _host(api: _GitHub) -> GitHubReleaseHost:
    return GitHubReleaseHost("example/tool", "tok", api_url=API, transport=httpx.MockTransport(api))


class TestGitHubReleaseHost:
    def test_is_a_release_host(self):
        assert isinstance(_host(_GitHub()), ReleaseHost)

    def test_creates_draft_and_uploads(self, assets: list[Path]):
        api = _GitHub()
        with _host(api) as host:
            release = host.create_draft_release("v1.2.3", "v1.2.3", "1.2.3", assets)
        assert release.draft is True
        assert release.release_id == 7
        assert release.assets == [a.name for a in assets]

        create = api.requests[0]
        assert create.method == "POST"
        assert json.loads(create.content) == {"tag_name": "v1.2.3", "name": "v1.2.3", "draft": True}
        assert create.headers["Authorization"] == "Bearer tok"

        uploads = api.requests[1:]
        assert [u.url.params["name"] for u in uploads] == [a.name for a in assets]
        assert uploads[0].headers["Content-Type"] == "application/zip"
        assert uploads[0].content == assets[0].name.encode()

    def test_non_draft_response_rejected(self, assets: list[Path]):
        with pytest.raises(PublicationError, match="draft"):
            _host(_GitHub(draft=False)).create_draft_release("v1", "v1", "1", assets)

    def test_upload_failure(self, assets: list[Path]):
        api = _GitHub(fail_upload=assets[1].name)
        with pytest.raises(PublicationError, match="HTTP 422"):
            _host(api).create_draft_release("v1", "v1", "1", assets)

    def test_upload_failure_names_the_partial_draft(self, assets: list[Path], caplog):
        api = _GitHub(fail_upload=assets[1].name)
        with caplog.at_level("ERROR", logger="shipwright.release.hosting"):
            with pytest.raises(PublicationError) as info:
                _host(api).create_draft_release("v1", "v1", "1", assets)
        assert "partial draft release v1 (id 7)" in str(info.value)
        assert "HTTP 422" in str(info.value)
        assert "id 7" in caplog.text

    def test_http_error_status(self, assets: list[Path]):
        host = GitHubReleaseHost(
            "example/other", "tok", api_url=API, transport=httpx.MockTransport(_GitHub())
        )
        with pytest.raises(PublicationError, match="HTTP 404"):
            host.create_draft_release("v1", "v1", "1", assets)

    def test_transport_error_wrapped(self, assets: list[Path]):
        def boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        host = GitHubReleaseHost("example/tool", "tok", api_url=API, transport=httpx.MockTransport(boom))
        with pytest.raises(PublicationError, match="refused"):
            host.create_draft_release("v1", "v1", "1", assets)

    @pytest.mark.parametrize("slug", ["", "no-slash"])
    def test_invalid_repository(self, slug: str):
        with pytest.raises(PublicationError):
            GitHubReleaseHost(slug, "tok")
