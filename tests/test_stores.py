"""
test_stores.py — Unit tests for the artifact stores.

The GitHub store is exercised against a scripted session; no network calls.
"""

import base64
import threading
from dataclasses import replace

import pytest
import requests

from lookup_reports.errors import ArtifactExistsError, StoreError
from lookup_reports.stores import GitHubArtifactStore, LocalArtifactStore, build_store

NAME = "SUELDO_12345678.pdf"
API = "https://api.github.com/repos/acme/reports/contents/reportes/SUELDO_12345678.pdf"
RAW = "https://raw.githubusercontent.com/acme/reports/main/reportes/SUELDO_12345678.pdf"


@pytest.fixture
def github_cfg(app_config):
    return replace(app_config.store, github_repo="acme/reports", github_token="ghp_test")


class TestGitHubStore:

    def test_requires_credentials(self, app_config):
        with pytest.raises(ValueError):
            GitHubArtifactStore(app_config.store)

    def test_auth_header(self, github_cfg, fake_session):
        session = fake_session()
        GitHubArtifactStore(github_cfg, session=session)
        assert session.headers["Authorization"] == "token ghp_test"

    def test_exists_hit(self, github_cfg, fake_session, fake_response):
        session = fake_session(fake_response(200, {"sha": "abc"}))
        store = GitHubArtifactStore(github_cfg, session=session)
        assert store.exists(NAME) == RAW
        method, url, kwargs = session.calls[0]
        assert (method, url) == ("GET", API)
        assert kwargs["params"] == {"ref": "main"}

    def test_exists_miss(self, github_cfg, fake_session, fake_response):
        store = GitHubArtifactStore(github_cfg, session=fake_session(fake_response(404)))
        assert store.exists(NAME) is None

    @pytest.mark.parametrize("outcome", [
        requests.ConnectionError("refused"),
        "http500",
    ])
    def test_exists_failure(self, github_cfg, fake_session, fake_response, outcome):
        if outcome == "http500":
            outcome = fake_response(500)
        store = GitHubArtifactStore(github_cfg, session=fake_session(outcome))
        with pytest.raises(StoreError):
            store.exists(NAME)

    def test_upload_puts_base64_content(self, github_cfg, fake_session, fake_response):
        session = fake_session(fake_response(201, {"content": {}}))
        store = GitHubArtifactStore(github_cfg, session=session)
        assert store.upload(NAME, b"%PDF-data", "application/pdf") == RAW

        method, url, kwargs = session.calls[0]
        assert (method, url) == ("PUT", API)
        body = kwargs["json"]
        assert base64.b64decode(body["content"]) == b"%PDF-data"
        assert body["branch"] == "main"
        assert NAME in body["message"]

    def test_upload_conflict_is_exists_error(self, github_cfg, fake_session, fake_response):
        store = GitHubArtifactStore(github_cfg, session=fake_session(fake_response(422)))
        with pytest.raises(ArtifactExistsError) as info:
            store.upload(NAME, b"x")
        assert info.value.url == RAW

    def test_upload_rejected(self, github_cfg, fake_session, fake_response):
        store = GitHubArtifactStore(github_cfg,
                                    session=fake_session(fake_response(401, text="Bad credentials")))
        with pytest.raises(StoreError, match="401"):
            store.upload(NAME, b"x")

    def test_fetch(self, github_cfg, fake_session, fake_response):
        session = fake_session(fake_response(200, content=b"bytes"), fake_response(404))
        store = GitHubArtifactStore(github_cfg, session=session)
        assert store.fetch(NAME) == b"bytes"
        assert session.calls[0][1] == RAW
        with pytest.raises(FileNotFoundError):
            store.fetch(NAME)


class TestLocalStore:

    def test_upload_then_exists(self, app_config):
        store = LocalArtifactStore(app_config.store)
        assert store.exists(NAME) is None
        url = store.upload(NAME, b"data")
        assert url == f"http://test/artifacts/{NAME}"
        assert store.exists(NAME) == url
        assert store.fetch(NAME) == b"data"

    def test_first_writer_wins(self, app_config):
        store = LocalArtifactStore(app_config.store)
        store.upload(NAME, b"first")
        with pytest.raises(ArtifactExistsError):
            store.upload(NAME, b"second")
        assert store.fetch(NAME) == b"first"

    def test_concurrent_writers_one_winner(self, app_config, tmp_path):
        store = LocalArtifactStore(app_config.store)
        start = threading.Barrier(8)
        outcomes = []

        def writer(i):
            payload = bytes([i]) * 4096
            start.wait()
            try:
                store.upload(NAME, payload)
                outcomes.append(("won", payload))
            except ArtifactExistsError:
                outcomes.append(("lost", payload))

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        winners = [payload for outcome, payload in outcomes if outcome == "won"]
        assert len(outcomes) == 8
        assert len(winners) == 1
        assert store.fetch(NAME) == winners[0]
        assert [p.name for p in (tmp_path / "artifacts").iterdir()] == [NAME]

    def test_no_temp_files_left(self, app_config, tmp_path):
        store = LocalArtifactStore(app_config.store)
        store.upload(NAME, b"data")
        with pytest.raises(ArtifactExistsError):
            store.upload(NAME, b"again")
        assert sorted(p.name for p in (tmp_path / "artifacts").iterdir()) == [NAME]

    def test_path_traversal_rejected(self, app_config):
        store = LocalArtifactStore(app_config.store)
        with pytest.raises(StoreError):
            store.upload("../escape.pdf", b"x")

    def test_fetch_missing(self, app_config):
        with pytest.raises(FileNotFoundError):
            LocalArtifactStore(app_config.store).fetch(NAME)


class TestBuildStore:

    def test_auto_without_credentials_is_local(self, app_config):
        assert isinstance(build_store(app_config.store), LocalArtifactStore)

    def test_auto_with_credentials_is_github(self, github_cfg):
        assert isinstance(build_store(github_cfg), GitHubArtifactStore)

    def test_forced_local(self, github_cfg):
        assert isinstance(build_store(replace(github_cfg, backend="local")), LocalArtifactStore)

    def test_forced_github_without_credentials_fails(self, app_config):
        with pytest.raises(ValueError):
            build_store(replace(app_config.store, backend="github"))
