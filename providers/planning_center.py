#!/usr/bin/env python3
"""
Planning Center People directory provider

Pulls every person on a Planning Center People list, with their emails and
phone numbers, for matching against local assessments.
https://api.planningcenteronline.com/people/v2/lists/{list_id}/people

Usage:
    python -m providers.planning_center --list-id 123456
    python -m providers.planning_center --list-id 123456 --refresh
"""

import argparse
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.logging import logger
from config.settings import settings
from processing.matching.errors import InputError, ProviderError
from processing.matching.types import CandidateRecord


@dataclass
class FetchStats:
    """Statistics from a directory fetch."""
    pages_fetched: int = 0
    people_fetched: int = 0
    people_skipped: int = 0
    api_requests: int = 0
    cache_hit: bool = False
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def log_summary(self):
        """Log summary statistics."""
        duration = (self.end_time - self.start_time).total_seconds() if self.end_time and self.start_time else 0
        logger.info("=" * 60)
        logger.info("DIRECTORY FETCH COMPLETE")
        logger.info("=" * 60)
        logger.info(f"Duration: {duration:.1f} seconds")
        logger.info(f"Served from cache: {self.cache_hit}")
        logger.info(f"API requests: {self.api_requests}")
        logger.info(f"Pages: {self.pages_fetched}")
        logger.info(f"People: {self.people_fetched} ({self.people_skipped} skipped)")
        logger.info("=" * 60)


class PlanningCenterDirectory:
    """
    Directory provider backed by a Planning Center People list.

    Any failed page aborts the fetch with ProviderError; callers never see
    a partial directory. Results are cached per scope for cache_ttl seconds.
    """

    # Planning Center allows 100 requests per 20 seconds
    MIN_REQUEST_INTERVAL = 0.2

    def __init__(
        self,
        access_token: Optional[str] = None,
        list_id: Optional[str] = None,
        base_url: Optional[str] = None,
        per_page: Optional[int] = None,
        max_pages: Optional[int] = None,
        timeout: Optional[float] = None,
        cache_ttl: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the provider. Unset arguments fall back to settings.

        Args:
            access_token: OAuth bearer token issued to the church
            list_id: Planning Center People list to match against
            base_url: People API root
            per_page: Page size requested from the API
            max_pages: Page count after which the fetch is aborted
            timeout: Per-request timeout in seconds
            cache_ttl: Seconds a fetched directory is reused
            session: Preconfigured HTTP session
        """
        self.access_token = access_token if access_token is not None else settings.PCO_ACCESS_TOKEN
        self.list_id = list_id if list_id is not None else settings.PCO_LIST_ID
        self.base_url = (base_url or settings.PCO_API_BASE_URL).rstrip("/")
        self.per_page = per_page or settings.PCO_PER_PAGE
        self.max_pages = max_pages or settings.PCO_MAX_PAGES
        self.timeout = timeout or settings.PCO_REQUEST_TIMEOUT
        self.cache_ttl = cache_ttl if cache_ttl is not None else settings.DIRECTORY_CACHE_TTL
        self.stats = FetchStats()
        self.last_request_time = 0.0
        self._cache: dict[object, tuple[float, tuple[CandidateRecord, ...]]] = {}

        if session is not None:
            self.session = session
        else:
            # Setup session with retry logic
            self.session = requests.Session()
            retry_strategy = Retry(
                total=3,
                backoff_factor=1,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["GET"],
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            self.session.mount("https://", adapter)
            self.session.mount("http://", adapter)

    @property
    def headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }

    def fetch_all_candidates(self, scope_id, force_refresh: bool = False) -> list[CandidateRecord]:
        """
        Fetch every person on the configured list.

        Args:
            scope_id: Cache key (one church)
            force_refresh: Ask Planning Center to rebuild the list and skip the cache

        Returns:
            List of CandidateRecord

        Raises:
            ProviderError: if the provider is not configured or any page fails
        """
        self.stats = FetchStats(start_time=datetime.now())

        if not force_refresh:
            cached = self._cached(scope_id)
            if cached is not None:
                self.stats.cache_hit = True
                self.stats.people_fetched = len(cached)
                self.stats.end_time = datetime.now()
                logger.info(f"Using cached Planning Center directory for scope {scope_id} ({len(cached)} people)")
                return list(cached)

        if not self.access_token:
            raise ProviderError("Planning Center not connected: no access token configured")
        if not self.list_id:
            raise ProviderError("No Planning Center list ID provided")

        if force_refresh:
            self._refresh_list()

        people, included = self._fetch_pages()
        candidates = self._parse_people(people, included)

        self._cache[scope_id] = (time.monotonic(), tuple(candidates))
        self.stats.people_fetched = len(candidates)
        self.stats.end_time = datetime.now()
        self.stats.log_summary()
        return candidates

    def clear_cache(self, scope_id=None) -> None:
        if scope_id is None:
            self._cache.clear()
        else:
            self._cache.pop(scope_id, None)

    def _cached(self, scope_id) -> Optional[tuple[CandidateRecord, ...]]:
        entry = self._cache.get(scope_id)
        if entry is None:
            return None
        fetched_at, candidates = entry
        if time.monotonic() - fetched_at > self.cache_ttl:
            del self._cache[scope_id]
            return None
        return candidates

    def _rate_limit(self):
        """Enforce rate limiting."""
        elapsed = time.time() - self.last_request_time
        if elapsed < self.MIN_REQUEST_INTERVAL:
            time.sleep(self.MIN_REQUEST_INTERVAL - elapsed)
        self.last_request_time = time.time()

    def _refresh_list(self) -> None:
        """Ask Planning Center to re-run the list's rules. Failure is not fatal."""
        url = f"{self.base_url}/lists/{self.list_id}/refresh"
        logger.info(f"Refreshing Planning Center list: {self.list_id}")
        self._rate_limit()
        self.stats.api_requests += 1
        try:
            response = self.session.post(url, headers=self.headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.warning(f"List refresh failed, continuing with fetch: {e}")
            return
        if not response.ok:
            logger.warning(f"List refresh failed ({response.status_code}), continuing with fetch")
            return
        logger.info(f"Successfully refreshed Planning Center list: {self.list_id}")

    def _get_page(self, url: str, params: Optional[dict] = None) -> dict:
        self._rate_limit()
        self.stats.api_requests += 1
        try:
            response = self.session.get(url, params=params, headers=self.headers, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise ProviderError(f"Planning Center request timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"Planning Center request failed: {e}") from e

        if not response.ok:
            raise ProviderError(
                f"Failed to fetch people from Planning Center list ({response.status_code})",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"Planning Center returned invalid JSON: {e}") from e

    def _fetch_pages(self) -> tuple[list[dict], list[dict]]:
        """Follow links.next until exhausted. Returns (people, included)."""
        url: Optional[str] = f"{self.base_url}/lists/{self.list_id}/people"
        params: Optional[dict] = {"include": "emails,phone_numbers", "per_page": self.per_page}
        people: list[dict] = []
        included: list[dict] = []

        while url:
            if self.stats.pages_fetched >= self.max_pages:
                raise ProviderError(
                    f"Planning Center list {self.list_id} exceeds {self.max_pages} pages; "
                    f"refusing to match against a truncated directory"
                )

            data = self._get_page(url, params)
            params = None  # next links already carry the query string
            self.stats.pages_fetched += 1

            page_people = data.get("data") or []
            people.extend(page_people)
            included.extend(data.get("included") or [])
            logger.debug(f"Page {self.stats.pages_fetched}: +{len(page_people)} people (total: {len(people)})")

            url = (data.get("links") or {}).get("next")

        logger.info(f"Pagination complete: {len(people)} people across {self.stats.pages_fetched} pages")
        return people, included

    def _parse_people(self, people: list[dict], included: list[dict]) -> list[CandidateRecord]:
        emails: dict[str, str] = {}
        phones: dict[str, str] = {}
        for item in included:
            attributes = item.get("attributes") or {}
            if attributes.get("address"):
                emails[item.get("id")] = attributes["address"].strip().lower()
            elif attributes.get("number"):
                phones[item.get("id")] = attributes["number"]

        candidates = []
        for person in people:
            try:
                candidates.append(self._parse_person(person, emails, phones))
            except InputError as e:
                logger.warning(f"Skipping Planning Center person: {e}")
                self.stats.people_skipped += 1
        return candidates

    def _parse_person(self, person: dict, emails: dict, phones: dict) -> CandidateRecord:
        person_id = person.get("id") if isinstance(person, dict) else None
        if not person_id:
            raise InputError("person record has no id")

        attributes = person.get("attributes") or {}
        relationships = person.get("relationships") or {}
        first_name = attributes.get("first_name") or ""
        last_name = attributes.get("last_name") or ""
        name = attributes.get("name") or f"{first_name} {last_name}".strip()

        def related(key: str, lookup: dict) -> tuple[str, ...]:
            refs = (relationships.get(key) or {}).get("data") or []
            return tuple(lookup[ref["id"]] for ref in refs if ref.get("id") in lookup)

        return CandidateRecord(
            external_id=str(person_id),
            name=name,
            emails=related("emails", emails),
            phones=related("phone_numbers", phones),
            status=attributes.get("status"),
            first_name=first_name or None,
            last_name=last_name or None,
        )


def main():
    parser = argparse.ArgumentParser(
        description="Fetch a Planning Center People list and print a summary"
    )
    parser.add_argument("--list-id", type=str, default=None, help="Planning Center list id")
    parser.add_argument(
        "--refresh",
        action="store_true",
        help="Refresh the list in Planning Center before fetching",
    )

    args = parser.parse_args()

    directory = PlanningCenterDirectory(list_id=args.list_id)
    try:
        candidates = directory.fetch_all_candidates(scope_id="cli", force_refresh=args.refresh)
    except ProviderError as e:
        logger.error(f"Fetch failed: {e}")
        sys.exit(1)

    with_email = sum(1 for c in candidates if c.emails)
    with_phone = sum(1 for c in candidates if c.phones)
    print(f"People: {len(candidates)}")
    print(f"  - With email: {with_email}")
    print(f"  - With phone: {with_phone}")


if __name__ == "__main__":
    main()
