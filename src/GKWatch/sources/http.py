"""Generic JSON-over-HTTP source adapter.

Scraping itself lives outside this package. A scraper service that answers
``GET <endpoint>?q=<term>&strict=<0|1>`` with a JSON list of listings (or an
``{"items": [...]}`` / ``{"error": ...}`` object) can be plugged in through
this adapter without writing Python.
"""

from __future__ import annotations

import random
import time
from typing import Any, Callable, Mapping, Optional, Sequence

import requests

from GKWatch.core.models import SourceResult
from GKWatch.sources.base import as_source_result
from GKWatch.utils.log import log

DEFAULT_TIMEOUT = 30.0
MAX_ATTEMPTS = 3
BASE_PAUSE = 1.0
MAX_SLEEP = 10.0

RETRYABLE_STATUS = {429, 500, 502, 503, 504}

HEADERS = {
    "User-Agent": "gk-watch/0.1",
    "Accept": "application/json",
}


class HttpJsonSource:
    """Listing source backed by a JSON search endpoint.

    Attributes:
        name: Source name reported on items and failures.
    """

    def __init__(
        self,
        name: str,
        *,
        endpoint: str,
        query_param: str = "q",
        params: Optional[Mapping[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = MAX_ATTEMPTS,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not endpoint:
            raise ValueError(f"HttpJsonSource {name!r} requires an endpoint")
        self.name = name
        self.endpoint = endpoint
        self.query_param = query_param
        self.params = dict(params or {})
        self.timeout = timeout
        self.max_attempts = max(1, int(max_attempts))
        self._session = session or requests.Session()
        self._sleep = sleep

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()

    def search(self, term: str, *, strict: bool = True, filters: Sequence[str] = ()) -> SourceResult:
        """Query the endpoint for one term.

        Raises:
            requests.RequestException: When every attempt failed. The
                aggregator records the error as a source failure.
        """
        params = dict(self.params)
        params[self.query_param] = term
        params["strict"] = "1" if strict else "0"
        if filters:
            params["exclude"] = ",".join(filters)

        resp = self._get_with_retry(params)
        resp.raise_for_status()
        payload = resp.json()
        return as_source_result(self.name, _unwrap_payload(payload))

    def _get_with_retry(self, params: dict[str, str]) -> requests.Response:
        last_err: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                log.debug("HTTP source request: source=%s attempt=%d/%d", self.name, attempt, self.max_attempts)
                resp = self._session.get(self.endpoint, params=params, headers=HEADERS, timeout=self.timeout)
                if resp.status_code in RETRYABLE_STATUS:
                    raise requests.exceptions.HTTPError(f"HTTP {resp.status_code}", response=resp)
                return resp
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                last_err = e
            except requests.exceptions.HTTPError as e:
                last_err = e

            if attempt < self.max_attempts:
                delay = min(BASE_PAUSE * (2 ** (attempt - 1)) + random.uniform(0, 0.25), MAX_SLEEP)
                log.debug("HTTP source retrying: source=%s delay=%.2f error=%s", self.name, delay, last_err)
                self._sleep(delay)

        assert last_err is not None
        raise last_err


def _unwrap_payload(payload: Any) -> Any:
    if isinstance(payload, Mapping) and "items" in payload and not payload.get("error"):
        return payload["items"]
    return payload
