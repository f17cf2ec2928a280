from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests

from ecomoni.domain.errors import StoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GithubStoreConfig:
    """
    Location and credentials of the measurement file in a GitHub repository.

    Parameters
    ----------
    owner, repo
        Repository coordinates.
    path
        Path of the JSON file inside the repository.
    branch
        Branch to read from and commit to.
    token
        Personal access token with contents write permission. Reads of a
        public repository work without it.
    api_url
        REST API root (override for GitHub Enterprise).
    timeout_s
        HTTP timeout per request.
    commit_message
        Message used for every commit.
    """

    owner: str
    repo: str
    path: str = "data/measurements.json"
    branch: str = "main"
    token: Optional[str] = None
    api_url: str = "https://api.github.com"
    timeout_s: float = 10.0
    commit_message: str = "Update measurements"


class GithubFileStore:
    """
    Single JSON-array file stored through the GitHub contents API.

    The file is the single source of truth for measurements. Every write
    commits the whole array with the blob ``sha`` read before it, so a
    concurrent commit by another client is rejected by GitHub instead of
    being overwritten.

    Notes
    -----
    - This class performs network I/O.
    - All transport and protocol failures surface as `StoreError`.
    """

    def __init__(self, cfg: GithubStoreConfig):
        self._cfg = cfg

    @property
    def _url(self) -> str:
        c = self._cfg
        return f"{c.api_url.rstrip('/')}/repos/{c.owner}/{c.repo}/contents/{c.path.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._cfg.token:
            headers["Authorization"] = f"Bearer {self._cfg.token}"
        return headers

    def fetch(self) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """
        Read the file.

        Returns
        -------
        tuple
            ``(records, sha)``. A missing file reads as ``([], None)``.

        Raises
        ------
        StoreError
            On network errors, unexpected status codes, or content that is
            not a JSON array.
        """
        try:
            r = requests.get(
                self._url,
                headers=self._headers(),
                params={"ref": self._cfg.branch},
                timeout=self._cfg.timeout_s,
            )
        except requests.RequestException as e:
            raise StoreError(f"GitHub read failed: {e}") from e

        if r.status_code == 404:
            logger.info("Measurement file %s not found; starting empty", self._cfg.path)
            return [], None
        if r.status_code != 200:
            raise StoreError(f"GitHub read failed: HTTP {r.status_code}")

        body = r.json()
        try:
            raw = base64.b64decode(body.get("content", ""))
            data = json.loads(raw.decode("utf-8")) if raw.strip() else []
        except (ValueError, UnicodeDecodeError) as e:
            raise StoreError(f"Measurement file is not valid JSON: {e}") from e

        if isinstance(data, dict) and isinstance(data.get("data"), list):
            data = data["data"]
        if not isinstance(data, list):
            raise StoreError("Measurement file must contain a JSON array")

        return [d for d in data if isinstance(d, dict)], body.get("sha")

    def commit(self, records: List[Dict[str, Any]], sha: Optional[str]) -> str:
        """
        Replace the file content with ``records``.

        Parameters
        ----------
        records
            Full collection to write.
        sha
            Blob sha returned by the last `fetch`, or None when creating the
            file.

        Returns
        -------
        str
            The new blob sha.

        Raises
        ------
        StoreError
            On network errors or a rejected commit (including a stale
            ``sha``).
        """
        content = json.dumps(records, ensure_ascii=False, indent=2).encode("utf-8")
        payload: Dict[str, Any] = {
            "message": self._cfg.commit_message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self._cfg.branch,
        }
        if sha:
            payload["sha"] = sha

        try:
            r = requests.put(
                self._url,
                headers=self._headers(),
                json=payload,
                timeout=self._cfg.timeout_s,
            )
        except requests.RequestException as e:
            raise StoreError(f"GitHub write failed: {e}") from e

        if r.status_code in (409, 422):
            raise StoreError("GitHub write rejected: the file changed since it was read")
        if r.status_code not in (200, 201):
            raise StoreError(f"GitHub write failed: HTTP {r.status_code}")

        new_sha = r.json().get("content", {}).get("sha", "")
        logger.info("Committed %d measurements to %s/%s:%s", len(records), self._cfg.owner, self._cfg.repo, self._cfg.path)
        return new_sha
