"""
Strava activity source.

Reads the authenticated athlete's activity summaries from Strava's
/athlete/activities endpoint. The access token is treated as valid; token
exchange and refresh live outside this service.
"""
import logging
import time
from typing import Dict, List, Optional

import requests

from core.config import settings
from core.exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)


class StravaRateLimitError(RuntimeError):
    """Strava answered 429 and no retry is left (or sleeping was not allowed)."""

    def __init__(self, message: str, *, retry_after_s: int):
        super().__init__(message)
        self.retry_after_s = int(retry_after_s)


def _retry_after_seconds(response, attempt: int) -> int:
    # Strava normally sends Retry-After; fall back to 60s, 120s, 240s...
    return int(response.headers.get("Retry-After", 60 * (2 ** attempt)))


def poll_activities_page(
    access_token: str,
    after_timestamp: Optional[int] = None,
    page: int = 1,
    per_page: Optional[int] = None,
    max_retries: Optional[int] = None,
    allow_rate_limit_sleep: bool = True,
) -> List[Dict]:
    """
    One page of activity summaries.

    429 responses sleep for Retry-After and try again; network and HTTP errors
    back off 1s, 2s, 4s. When attempts run out a 429 surfaces as
    StravaRateLimitError and anything else as UpstreamUnavailableError.
    """
    if not access_token:
        raise ValueError("Strava access token is required")

    per_page = per_page or settings.STRAVA_PAGE_SIZE
    attempts = max_retries or max(1, settings.EXTERNAL_API_RETRY_ATTEMPTS)

    params = {"per_page": int(per_page), "page": int(page)}
    if after_timestamp:
        params["after"] = int(after_timestamp)
    request_kwargs = {
        "headers": {"Authorization": f"Bearer {access_token}"},
        "params": params,
        "timeout": settings.EXTERNAL_API_TIMEOUT,
    }
    url = f"{settings.STRAVA_API_BASE}/athlete/activities"

    for attempt in range(attempts):
        last_attempt = attempt == attempts - 1
        try:
            response = requests.get(url, **request_kwargs)

            if response.status_code == 429:
                wait_s = _retry_after_seconds(response, attempt)
                if last_attempt or not allow_rate_limit_sleep:
                    raise StravaRateLimitError(
                        f"Strava rate limit hit on page {page}, retry after {wait_s}s",
                        retry_after_s=wait_s,
                    )
                logger.warning("Strava rate limited page %s, sleeping %ss (attempt %s/%s)",
                               page, wait_s, attempt + 1, attempts)
                time.sleep(wait_s)
                continue

            response.raise_for_status()
            body = response.json()
            if not isinstance(body, list):
                logger.warning("Unexpected Strava payload for page %s: %s", page, type(body).__name__)
                return []
            return body

        except requests.exceptions.RequestException as e:
            if last_attempt:
                logger.error("Strava page %s failed after %s attempts: %s", page, attempts, e)
                raise UpstreamUnavailableError(f"Strava request failed: {e}") from e
            backoff_s = 2 ** attempt
            logger.warning("Strava page %s request error (%s), retrying in %ss", page, e, backoff_s)
            time.sleep(backoff_s)

    raise UpstreamUnavailableError("Strava request failed")


def fetch_all_activities(access_token: str, after_timestamp: Optional[int] = None) -> List[Dict]:
    """Every summary after `after_timestamp`, page by page until a short page."""
    per_page = settings.STRAVA_PAGE_SIZE
    collected: List[Dict] = []
    page = 1

    while True:
        batch = poll_activities_page(access_token, after_timestamp=after_timestamp, page=page, per_page=per_page)
        collected.extend(batch)
        if len(batch) < per_page:
            break
        page += 1
        if settings.STRAVA_PAGE_PAUSE_S > 0:
            time.sleep(settings.STRAVA_PAGE_PAUSE_S)

    logger.info("Fetched %s Strava activities over %s page(s)", len(collected), page)
    return collected
