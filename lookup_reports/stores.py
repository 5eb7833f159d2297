"""
stores.py — Artifact Stores.

Two interchangeable stores keyed by the deterministic artifact file name:

    GitHubArtifactStore — commits files to a repository through the GitHub
                          contents API and serves them from raw.githubusercontent
    LocalArtifactStore  — writes into a local directory behind a base URL

Without GitHub credentials the local store is used, making local development
safe (nothing leaves the machine).
"""

import base64
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

import requests

from lookup_reports.config import StoreConfig
from lookup_reports.errors import ArtifactExistsError, StoreError

logger = logging.getLogger(__name__)


class GitHubArtifactStore:
    """Artifacts committed under `<prefix>/<name>` on one branch."""

    def __init__(self, cfg: StoreConfig, session: Optional[requests.Session] = None):
        if not cfg.github_repo or "/" not in cfg.github_repo or not cfg.github_token:
            raise ValueError("GITHUB_REPO (owner/repo) and GITHUB_TOKEN are required")
        self.cfg = cfg
        self.owner, self.repo = cfg.github_repo.split("/", 1)
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"token {cfg.github_token}",
            "Accept": "application/vnd.github+json",
        })

    def _path(self, name: str) -> str:
        return f"{self.cfg.prefix}/{name}" if self.cfg.prefix else name

    def _api_url(self, name: str) -> str:
        return (f"{self.cfg.github_api_url.rstrip('/')}/repos/{self.owner}/{self.repo}"
                f"/contents/{self._path(name)}")

    def url_for(self, name: str) -> str:
        return (f"{self.cfg.github_raw_url.rstrip('/')}/{self.owner}/{self.repo}"
                f"/{self.cfg.github_branch}/{self._path(name)}")

    def exists(self, name: str) -> Optional[str]:
        try:
            resp = self.session.get(self._api_url(name), params={"ref": self.cfg.github_branch},
                                    timeout=self.cfg.timeout_seconds)
        except requests.RequestException as exc:
            raise StoreError(f"existence check failed for {name}: {exc}") from exc
        if resp.status_code == 200:
            return self.url_for(name)
        if resp.status_code == 404:
            return None
        raise StoreError(f"existence check for {name} returned HTTP {resp.status_code}")

    def upload(self, name: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        payload = {
            "message": f"Reporte generado: {name}",
            "content": base64.b64encode(data).decode("ascii"),
            "branch": self.cfg.github_branch,
        }
        try:
            resp = self.session.put(self._api_url(name), json=payload,
                                    timeout=self.cfg.timeout_seconds)
        except requests.RequestException as exc:
            raise StoreError(f"upload failed for {name}: {exc}") from exc
        if resp.status_code in (200, 201):
            logger.info("Committed %s (%d bytes) to %s/%s", name, len(data), self.owner, self.repo)
            return self.url_for(name)
        if resp.status_code == 422:
            # Contents API refuses to create a path that already exists without its sha
            raise ArtifactExistsError(name, self.url_for(name))
        raise StoreError(f"upload of {name} returned HTTP {resp.status_code}: {resp.text[:200]}")

    def fetch(self, name: str) -> bytes:
        try:
            resp = self.session.get(self.url_for(name), timeout=self.cfg.timeout_seconds)
        except requests.RequestException as exc:
            raise StoreError(f"download failed for {name}: {exc}") from exc
        if resp.status_code == 404:
            raise FileNotFoundError(name)
        if resp.status_code != 200:
            raise StoreError(f"download of {name} returned HTTP {resp.status_code}")
        return resp.content


class LocalArtifactStore:
    """Artifacts written to `local_dir` and served from `local_base_url`."""

    def __init__(self, cfg: StoreConfig):
        self.root = Path(cfg.local_dir)
        self.base_url = cfg.local_base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, name: str) -> Path:
        path = self.root / name
        if path.resolve().parent != self.root.resolve():
            raise StoreError(f"invalid artifact name: {name!r}")
        return path

    def url_for(self, name: str) -> str:
        return f"{self.base_url}/{name}"

    def exists(self, name: str) -> Optional[str]:
        return self.url_for(name) if self._path(name).exists() else None

    def upload(self, name: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        path = self._path(name)
        tmp = None
        try:
            fd, tmp = tempfile.mkstemp(dir=self.root, prefix=f".{name}.", suffix=".tmp")
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            # link() refuses an existing target: exactly one writer publishes the file
            os.link(tmp, path)
        except FileExistsError:
            raise ArtifactExistsError(name, self.url_for(name)) from None
        except OSError as exc:
            raise StoreError(f"could not write {path}: {exc}") from exc
        finally:
            if tmp and os.path.exists(tmp):
                os.unlink(tmp)
        logger.info("Stored %s (%d bytes) in %s", name, len(data), self.root)
        return self.url_for(name)

    def fetch(self, name: str) -> bytes:
        return self._path(name).read_bytes()


def build_store(cfg: StoreConfig):
    """Pick the artifact store for the configured backend."""
    backend = cfg.backend.lower()
    if backend == "github" or (backend == "auto" and cfg.github_repo and cfg.github_token):
        return GitHubArtifactStore(cfg)
    if backend == "auto":
        logger.warning("GITHUB_REPO / GITHUB_TOKEN not set; storing artifacts locally in %s",
                       cfg.local_dir)
    return LocalArtifactStore(cfg)
