"""
Registry clients for looking up the newest release of a package.

Implements an async client for the Hex package registry. Every failure mode
of a lookup is turned into a deduplicated notification and an empty result,
so one bad package never stops the others from being checked.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple

import httpx

from .cli_config import DEFAULT_REGISTRY_URL, NetworkConfig
from .dependency import CheckResult, Dependency
from .error_handling import (
    EmptyResponseError,
    ErrorCategory,
    RegistryResponseError,
    RegistryTransportError,
    log_network_error,
)
from .notifications import NotificationLevel, Notifier
from .structured_logging import log_fetch_result


def pick_latest(versions: Iterable[str]) -> Optional[str]:
    """
    Pick the newest version by sorting the raw strings in descending order.

    The comparison is plain string ordering, not numeric: ``"2.0.0"`` wins
    over ``"10.0.0"``. Hex lists releases newest first, so in practice this
    only matters for packages whose major version reached two digits.
    """
    ordered = sorted(versions, reverse=True)
    return ordered[0] if ordered else None


@dataclass(frozen=True)
class Release:
    """One entry of a package's release list."""

    version: str
    inserted_at: Optional[str] = None
    has_docs: Optional[bool] = None


@dataclass(frozen=True)
class ReleaseList:
    """Decoded registry answer for one package."""

    package_name: str
    releases: Tuple[Release, ...] = ()

    @classmethod
    def from_payload(cls, package_name: str, payload: Any) -> "ReleaseList":
        """
        Build a release list from a decoded JSON document.

        Raises:
            RegistryResponseError: If the document is not an object with a
                ``releases`` list whose entries carry a string ``version``
        """
        if not isinstance(payload, dict):
            raise RegistryResponseError(
                package_name, "Response is not a JSON object"
            )

        raw_releases = payload.get("releases")
        if not isinstance(raw_releases, list):
            raise RegistryResponseError(
                package_name, "Response has no releases collection"
            )

        releases = []
        for entry in raw_releases:
            if not isinstance(entry, dict) or not isinstance(entry.get("version"), str):
                raise RegistryResponseError(
                    package_name, "Release entry without a version string"
                )
            has_docs = entry.get("has_docs")
            releases.append(
                Release(
                    version=entry["version"],
                    inserted_at=entry.get("inserted_at"),
                    has_docs=has_docs if isinstance(has_docs, bool) else None,
                )
            )

        return cls(package_name=package_name, releases=tuple(releases))

    @property
    def versions(self) -> Tuple[str, ...]:
        return tuple(release.version for release in self.releases)

    def latest(self) -> Optional[str]:
        return pick_latest(self.versions)


class BaseRegistryClient(ABC):
    """
    Base class for registry clients.

    Uses the async context manager pattern for httpx.AsyncClient resource
    management: the HTTP client exists only between entry and exit.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        connect_timeout: float = 5.0,
        user_agent: str = "hexcheck/1.0.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = httpx.Timeout(timeout, connect=connect_timeout)
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None
        self._headers = {
            "User-Agent": user_agent,
            "Accept": "application/json",
        }

    async def __aenter__(self):
        """Initialize the HTTP client when entering the context."""
        self.client = httpx.AsyncClient(
            timeout=self.timeout,
            headers=self._headers,
            follow_redirects=True,
            transport=self.transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Clean up the HTTP client when exiting the context."""
        if self.client:
            await self.client.aclose()
            self.client = None

    @abstractmethod
    async def fetch_releases(self, package_name: str) -> ReleaseList:
        """Fetch and decode the release list of a package."""


class HexClient(BaseRegistryClient):
    """Client for the Hex package registry (hex.pm)."""

    def __init__(
        self,
        base_url: str = DEFAULT_REGISTRY_URL,
        timeout: float = 10.0,
        connect_timeout: float = 5.0,
        user_agent: str = "hexcheck/1.0.0",
        notifier: Optional[Notifier] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout, connect_timeout, user_agent, transport)
        self.base_url = base_url.rstrip("/")
        self.notifier = notifier or Notifier()

    def build_url(self, package_name: str) -> str:
        # Package names are plain identifiers, nothing to escape.
        return f"{self.base_url}/{package_name}"

    async def fetch_releases(self, package_name: str) -> ReleaseList:
        """
        Fetch the release list of ``package_name``.

        Raises:
            RuntimeError: If used outside ``async with``
            RegistryTransportError: If the request fails or the status is not 2xx
            EmptyResponseError: If the body is empty
            RegistryResponseError: If the body is not a valid release document
        """
        if self.client is None:
            raise RuntimeError(
                "HTTP client not initialized - use within async context manager"
            )

        url = self.build_url(package_name)
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RegistryTransportError(
                package_name,
                f"HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise RegistryTransportError(
                package_name, f"Network error: {e}"
            ) from e

        if not response.content:
            raise EmptyResponseError(package_name, "Empty response body")

        try:
            payload = response.json()
        except ValueError as e:
            raise RegistryResponseError(package_name, f"Invalid JSON: {e}") from e

        return ReleaseList.from_payload(package_name, payload)

    async def fetch_latest(self, package_name: str) -> Optional[str]:
        """
        Return the newest release of ``package_name``, or None.

        None means the lookup failed (already reported to the user) or the
        package has no releases (not reported).
        """
        url = self.build_url(package_name)
        try:
            release_list = await self.fetch_releases(package_name)
        except RuntimeError as e:
            log_network_error(
                str(e), "registry_clients", "fetch_latest", url=url, exception=e
            )
            self.notifier.notify_once(
                f"Failed to start request for {package_name}", NotificationLevel.ERROR
            )
            return None
        except RegistryTransportError as e:
            log_network_error(
                str(e),
                "registry_clients",
                "fetch_latest",
                url=url,
                status_code=e.status_code,
                exception=e,
            )
            self.notifier.notify_once(
                f"Failed to fetch {package_name} from hex.pm", NotificationLevel.WARN
            )
            return None
        except EmptyResponseError as e:
            log_network_error(
                str(e), "registry_clients", "fetch_latest", url=url, exception=e
            )
            self.notifier.notify_once(
                f"No result returned for {package_name}", NotificationLevel.WARN
            )
            return None
        except RegistryResponseError as e:
            log_network_error(
                str(e),
                "registry_clients",
                "fetch_latest",
                url=url,
                exception=e,
                category=ErrorCategory.PROTOCOL,
            )
            self.notifier.notify_once(
                f"Invalid JSON response for {package_name}", NotificationLevel.ERROR
            )
            return None

        return release_list.latest()

    async def check_dependency(self, dependency: Dependency) -> CheckResult:
        """Look up ``dependency`` and wrap the answer in a CheckResult."""
        start_time = time.time()
        latest = await self.fetch_latest(dependency.name)
        result = CheckResult(dependency=dependency, latest_version=latest)
        log_fetch_result(
            dependency.name,
            latest,
            int((time.time() - start_time) * 1000),
            has_update=result.has_update,
        )
        return result


def get_registry_client(
    network: Optional[NetworkConfig] = None,
    notifier: Optional[Notifier] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> HexClient:
    """
    Factory function to get a configured registry client.

    Args:
        network: Endpoint and timeout settings
        notifier: Where lookup failures are reported
        transport: Optional httpx transport (tests pass a MockTransport)
    """
    network = network or NetworkConfig()
    return HexClient(
        base_url=network.registry_url,
        timeout=network.timeout,
        connect_timeout=network.connect_timeout,
        user_agent=network.user_agent,
        notifier=notifier,
        transport=transport,
    )
