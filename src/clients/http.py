from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import httpx

from archive.errors import UpstreamError

logger = logging.getLogger(__name__)

UA = "Muninn/0.1 (+https://local)"
DEFAULT_TIMEOUT = 30.0
MAX_RETRIES = 3
BASE_DELAY = 0.75            # initial backoff delay


def make_timeout(total: float) -> httpx.Timeout:
    return httpx.Timeout(total, connect=min(5.0, total))


def post_json(
    url: str,
    payload: Dict[str, Any],
    *,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = DEFAULT_TIMEOUT,
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY,
) -> Any:
    """POST a JSON body and return the decoded JSON response.

    Transport errors and 5xx responses are retried with linear backoff; 4xx
    responses fail immediately. Any final failure is raised as UpstreamError.
    """
    hdrs = {"User-Agent": UA, "Content-Type": "application/json"}
    hdrs.update(headers or {})

    last_exc: Exception | None = None
    attempts = max(1, max_retries)
    for attempt in range(1, attempts + 1):
        try:
            with httpx.Client(timeout=make_timeout(timeout), headers=hdrs) as client:
                r = client.post(url, json=payload)
                r.raise_for_status()
                return r.json()
        except httpx.HTTPStatusError as e:
            last_exc = e
            if e.response is not None and e.response.status_code < 500:
                break
        except (httpx.HTTPError, ValueError) as e:
            last_exc = e
        if attempt < attempts:
            delay = base_delay * attempt
            logger.warning("POST %s retry %d: %s (sleep %.2fs)", url, attempt, last_exc, delay)
            time.sleep(delay)

    logger.error("POST %s failed: %s", url, last_exc)
    raise UpstreamError(f"request to {url} failed: {last_exc}") from last_exc
