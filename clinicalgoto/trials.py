"""ClinicalTrials.gov v2 search adapter.

Turns a ``(location, condition)`` query into a single call against the
public ``/studies`` endpoint, restricted to recruiting studies, and maps
each returned study onto a compact :class:`TrialSummary`.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from .config import settings
from .errors import UpstreamError, ValidationError
from .schemas import TrialSummary

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 1000  # upstream limit

UNTITLED_STUDY = "Untitled Study"
NO_DESCRIPTION = "No description available."
NO_LOCATION = "Location not specified"


@dataclass
class TrialSearchResult:
    total_count: int
    studies: List[TrialSummary] = field(default_factory=list)


def _join(values: Optional[List[Any]]) -> Optional[str]:
    cleaned = [str(value).strip() for value in values or [] if str(value).strip()]
    return ", ".join(cleaned) or None


def _format_site(site: Dict[str, Any]) -> Optional[str]:
    return _join([site.get(key) for key in ("facility", "city", "state", "country") if site.get(key)])


def _pick_location(sites: List[Dict[str, Any]], wanted: Optional[str]) -> Optional[str]:
    """Prefer the first site whose city/state/country mentions the query."""
    if not sites:
        return None
    if wanted:
        needle = wanted.strip().lower()
        for site in sites:
            haystack = " ".join(
                str(site.get(key) or "") for key in ("city", "state", "country")
            ).lower()
            if needle and needle in haystack:
                return _format_site(site)
    return _format_site(sites[0])


def summarize_study(study: Dict[str, Any], wanted_location: Optional[str] = None) -> TrialSummary:
    """Map one upstream study record, defaulting missing display fields."""
    protocol = study.get("protocolSection") or {}
    identification = protocol.get("identificationModule") or {}
    description = protocol.get("descriptionModule") or {}
    status = protocol.get("statusModule") or {}
    design = protocol.get("designModule") or {}
    conditions = protocol.get("conditionsModule") or {}
    contacts = protocol.get("contactsLocationsModule") or {}

    title = identification.get("briefTitle") or identification.get("officialTitle")
    return TrialSummary(
        id=identification.get("nctId"),
        title=title or UNTITLED_STUDY,
        description=description.get("briefSummary") or NO_DESCRIPTION,
        location=_pick_location(contacts.get("locations") or [], wanted_location) or NO_LOCATION,
        status=status.get("overallStatus"),
        phase=_join(design.get("phases")),
        condition=_join(conditions.get("conditions")),
    )


class ClinicalTrialsClient:
    """Single-attempt client for the ClinicalTrials.gov studies search.

    A pre-built ``httpx.Client`` may be injected (tests pass one backed by
    ``httpx.MockTransport``); otherwise a short-lived client is opened per
    search with the configured timeout.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = (base_url or settings.ctgov_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.ctgov_timeout_seconds
        self._client = client

    def build_params(
        self, location: str, condition: Optional[str], page_size: int
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "format": "json",
            "query.locn": location,
            "filter.overallStatus": "RECRUITING",
            "pageSize": min(page_size, MAX_PAGE_SIZE),
            "countTotal": "true",
        }
        if condition:
            params["query.cond"] = condition
        return params

    def _get(self, params: Dict[str, Any]) -> httpx.Response:
        url = f"{self.base_url}/studies"
        if self._client is not None:
            return self._client.get(url, params=params, timeout=self.timeout)
        with httpx.Client(timeout=self.timeout) as client:
            return client.get(url, params=params)

    def search(
        self,
        location: str,
        condition: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> TrialSearchResult:
        location = (location or "").strip()
        condition = (condition or "").strip() or None
        if not location:
            raise ValidationError("Location is required")
        if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
            raise ValidationError("pageSize must be a positive integer")

        params = self.build_params(location, condition, page_size)
        logger.info("Searching recruiting trials location=%r condition=%r", location, condition)

        try:
            response = self._get(params)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            logger.warning("ClinicalTrials.gov search timed out after %ss", self.timeout)
            raise UpstreamError("Clinical trial search timed out") from exc
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "ClinicalTrials.gov returned HTTP %s", exc.response.status_code
            )
            raise UpstreamError("Failed to fetch clinical trials") from exc
        except httpx.HTTPError as exc:
            logger.warning("ClinicalTrials.gov request failed: %s", exc)
            raise UpstreamError("Failed to fetch clinical trials") from exc
        except ValueError as exc:
            logger.warning("ClinicalTrials.gov returned a non-JSON body")
            raise UpstreamError("Invalid response from clinical trials service") from exc

        if not isinstance(payload, dict):
            raise UpstreamError("Invalid response from clinical trials service")
        raw_studies = payload.get("studies") or []
        if not isinstance(raw_studies, list):
            raise UpstreamError("Invalid response from clinical trials service")

        try:
            studies = [
                summarize_study(study, location) for study in raw_studies if isinstance(study, dict)
            ]
        except (AttributeError, TypeError, PydanticValidationError) as exc:
            logger.warning("ClinicalTrials.gov returned a malformed study record: %s", exc)
            raise UpstreamError("Invalid response from clinical trials service") from exc

        total = payload.get("totalCount")
        total_count = total if isinstance(total, int) else len(studies)
        logger.info("Found %d recruiting trials (total %d)", len(studies), total_count)
        return TrialSearchResult(total_count=total_count, studies=studies)


def get_trial_search() -> ClinicalTrialsClient:
    return ClinicalTrialsClient()
