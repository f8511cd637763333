"""HTTP client for the resident directory service."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from cuotas.config import settings
from cuotas.errors import UpstreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resident:
    """Resident as billed: directory id plus contact data."""

    id: str
    name: str | None = None
    email: str | None = None


def parse_resident(item: Any) -> Resident:
    if not isinstance(item, dict) or item.get("id") in (None, ""):
        raise UpstreamError("Resident directory returned an entry without id", code="bad_roster")
    return Resident(id=str(item["id"]), name=item.get("name"), email=item.get("email"))


class ResidentDirectoryClient:
    """Fetches the active resident roster over HTTP.

    The directory answers ``GET {base_url}/residents?active=true`` with either
    a JSON list or an envelope holding the list under ``data``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url if base_url is not None else settings.directory_url
        self.timeout = timeout if timeout is not None else settings.directory_timeout
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def fetch_active_residents(self) -> list[Resident]:
        """Return the active residents.

        Raises:
            UpstreamError: Directory not configured, unreachable, non-2xx, or
                the payload does not look like a roster
        """
        if not self.enabled:
            raise UpstreamError(
                "Resident directory is not configured (DIRECTORY_URL)", code="directory_disabled"
            )

        url = f"{self.base_url.rstrip('/')}/residents"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, params={"active": "true"})
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Resident directory answered %d", e.response.status_code)
            raise UpstreamError(
                f"Resident directory answered {e.response.status_code}",
                code="directory_error",
            ) from e
        except httpx.HTTPError as e:
            logger.error("Resident directory unreachable: %s", e)
            raise UpstreamError("Resident directory unreachable", code="directory_error") from e
        except ValueError as e:
            raise UpstreamError("Resident directory returned invalid JSON", code="bad_roster") from e

        items = payload.get("data") if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise UpstreamError("Resident directory returned an unexpected payload", code="bad_roster")

        residents = [parse_resident(item) for item in items]
        logger.info("Fetched %d active residents from directory", len(residents))
        return residents


__all__ = ["Resident", "ResidentDirectoryClient", "parse_resident"]
