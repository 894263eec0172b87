# srcom/client.py
# Purpose: Thin speedrun.com API v1 client with strict timeouts and bounded retries.
#
# Only transient failures (HTTP 429, HTTP 5xx, connection/timeout errors) are
# retried. Everything else surfaces as FetchError so the caller can decide
# whether to stop a scan, skip a leaderboard or skip a single run.

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import requests

API_BASE = "https://www.speedrun.com/api/v1"
EMBED_FULL = "game,category,players,level"

UA = "wr-live-readme-bot/3.0 (+requests)"
REQ_HEADERS = {
    "User-Agent": UA,
    "Accept": "application/json",
    "Accept-Encoding": "gzip, deflate",
}

CONNECT_TIMEOUT = 20
READ_TIMEOUT    = 60
MAX_RETRIES     = 5     # extra attempts after the first one
RETRY_BACKOFF   = 0.2   # seconds, multiplied by attempt number

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """A request that failed permanently or ran out of retries."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None):
        super().__init__(f"{reason}: {url}")
        self.url = url
        self.reason = reason
        self.status = status


def _retryable(status: int) -> bool:
    return status == 429 or 500 <= status < 600


class SpeedrunClient:
    def __init__(self, session: Optional[requests.Session] = None,
                 base_url: str = API_BASE,
                 timeout: float = READ_TIMEOUT,
                 retries: int = MAX_RETRIES,
                 backoff: float = RETRY_BACKOFF,
                 sleep=time.sleep):
        self.session = session or requests.Session()
        self.session.headers.update(REQ_HEADERS)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retries = max(0, int(retries))
        self.backoff = max(0.0, float(backoff))
        self._sleep = sleep

    # ---- low-level ----

    def fetch_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET base_url/path and return the decoded ``data`` member."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        last_err: Optional[FetchError] = None

        for attempt in range(self.retries + 1):
            t0 = time.monotonic()
            try:
                r = self.session.get(url, params=params,
                                     timeout=(min(CONNECT_TIMEOUT, self.timeout), self.timeout))
            except (requests.ConnectionError, requests.Timeout) as ex:
                last_err = FetchError(url, f"network error: {ex.__class__.__name__}")
                logger.debug("HTTP FAIL attempt=%d %s in %.2fs: %s",
                             attempt + 1, ex.__class__.__name__, time.monotonic() - t0, url)
                self._sleep(self.backoff * (attempt + 1))
                continue
            except requests.RequestException as ex:
                raise FetchError(url, f"request error: {ex}") from ex

            elapsed = time.monotonic() - t0
            if 200 <= r.status_code < 300:
                logger.debug("HTTP %d in %.2fs (%d bytes): %s",
                             r.status_code, elapsed, len(r.content or b""), r.url or url)
                try:
                    payload = r.json()
                except ValueError as ex:
                    raise FetchError(url, "malformed json", r.status_code) from ex
                if not isinstance(payload, dict) or "data" not in payload:
                    raise FetchError(url, "response missing data", r.status_code)
                return payload["data"]

            logger.debug("HTTP FAIL attempt=%d code=%d in %.2fs: %s",
                         attempt + 1, r.status_code, elapsed, url)
            last_err = FetchError(url, f"HTTP {r.status_code}", r.status_code)
            if not _retryable(r.status_code):
                raise last_err
            self._sleep(self.backoff * (attempt + 1))

        raise last_err if last_err else FetchError(url, "no attempts made")

    # ---- endpoints ----

    def runs_page(self, offset: int, max_: int = 200) -> list:
        """One page of verified runs, newest verification first."""
        data = self.fetch_json("runs", {
            "status": "verified",
            "orderby": "verify-date",
            "direction": "desc",
            "embed": EMBED_FULL,
            "max": max_,
            "offset": offset,
        })
        if not isinstance(data, list):
            raise FetchError(f"{self.base_url}/runs", "runs payload is not a list")
        return data

    def leaderboard(self, partition, top: int) -> list:
        """Ranked entries (``{"place", "run"}``) for a partition, as of now."""
        game, category, level, values = partition
        if level:
            path = f"leaderboards/{game}/level/{level}/{category}"
        else:
            path = f"leaderboards/{game}/category/{category}"
        params: Dict[str, Any] = {"top": top}
        for var_id, value_id in (values or {}).items():
            params[f"var-{var_id}"] = value_id
        data = self.fetch_json(path, params)
        runs = data.get("runs") if isinstance(data, dict) else None
        if not isinstance(runs, list):
            raise FetchError(f"{self.base_url}/{path}", "leaderboard payload missing runs")
        return runs

    def run(self, run_id: str, embed: bool = False) -> dict:
        params = {"embed": EMBED_FULL} if embed else None
        data = self.fetch_json(f"runs/{run_id}", params)
        if not isinstance(data, dict):
            raise FetchError(f"{self.base_url}/runs/{run_id}", "run payload is not an object")
        return data

    def category_variables(self, category_id: str) -> list:
        data = self.fetch_json(f"categories/{category_id}/variables", {"max": 200})
        return data if isinstance(data, list) else []
