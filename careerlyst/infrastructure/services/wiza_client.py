"""
Wiza Client

Creates prospect lists through the Wiza API. List creation is
asynchronous on Wiza's side: the call returns a list ID immediately and
contacts are fetched later.

API Docs: https://wiza.co/api-docs
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from careerlyst.config.settings import get_settings
from careerlyst.infrastructure.exceptions import WizaServiceError

logger = logging.getLogger(__name__)


DEFAULT_JOB_TITLES = [
    "Product Manager",
    "Director of Product",
    "Chief Product Officer",
    "VP of Product",
    "Associate Product Manager",
    "Product Owner",
    "Vice President of Product Management",
    "Sr. Director Product Management",
    "Technical Product Manager",
    "Director of Product Management",
    "Director of Product Operations",
]


@dataclass
class WizaListResult:
    """Outcome of a create-list call."""
    list_id: str
    status: str
    raw: Dict[str, Any]


def build_prospect_list_payload(
    list_name: str,
    job_titles: List[str],
    max_profiles: int,
    linkedin_url: Optional[str] = None,
    company_name: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Request body for ``/prospects/create_prospect_list``.

    A LinkedIn company URL is the more precise filter, so it is used in
    preference to the company name.
    """
    filters: Dict[str, Any] = {
        "job_title": [{"v": title, "s": "i"} for title in job_titles],
    }
    if linkedin_url:
        filters["profile_url"] = [{"v": linkedin_url, "s": "i"}]
    else:
        filters["job_company"] = [{"v": company_name, "s": "i"}]

    return {
        "list": {
            "name": list_name,
            "max_profiles": max_profiles,
            "enrichment_level": "partial",
            "email_options": {
                "accept_work": True,
                "accept_personal": False,
                "accept_generic": False,
            },
        },
        "filters": filters,
    }


class WizaClient:
    """Thin async wrapper over the Wiza REST API."""

    def __init__(self):
        settings = get_settings()
        self.api_key = settings.wiza_api_key
        self.base_url = settings.wiza_api_base.rstrip("/")
        self.timeout = settings.wiza_request_timeout
        if not self.api_key:
            logger.warning("WIZA_API_KEY not configured")

    async def create_prospect_list(self, payload: Dict[str, Any]) -> WizaListResult:
        """
        Create a prospect list.

        Raises:
            WizaServiceError: missing key, HTTP failure, or a response
                without a list ID
        """
        if not self.api_key:
            raise WizaServiceError("Wiza API key not configured", operation="create_prospect_list")

        list_name = payload.get("list", {}).get("name")
        logger.info(f"[WIZA] Creating prospect list '{list_name}'")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/prospects/create_prospect_list",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"[WIZA] HTTP {e.response.status_code} creating '{list_name}': {e.response.text[:500]}")
            raise WizaServiceError(
                f"Wiza API error: {e.response.status_code}",
                operation="create_prospect_list",
                original_error=e,
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[WIZA] Error creating '{list_name}': {e}")
            raise WizaServiceError(
                "Failed to create Wiza prospect list",
                operation="create_prospect_list",
                original_error=e,
            )

        # Wiza nests the list under "data"
        body = data.get("data") or data
        list_id = body.get("id") or data.get("id")
        status = body.get("status") or data.get("status") or "queued"

        if not list_id:
            logger.error(f"[WIZA] Response missing list ID: {data}")
            raise WizaServiceError(
                "Wiza API did not return a list ID",
                operation="create_prospect_list",
            )

        logger.info(f"[WIZA] Created list {list_id} ({status})")
        return WizaListResult(list_id=str(list_id), status=str(status), raw=data)


_wiza_client_instance: Optional[WizaClient] = None


def get_wiza_client() -> WizaClient:
    """Get or create Wiza client singleton."""
    global _wiza_client_instance

    if _wiza_client_instance is None:
        _wiza_client_instance = WizaClient()

    return _wiza_client_instance
