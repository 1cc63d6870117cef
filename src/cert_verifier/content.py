"""
Content store access.

Fetches certificate documents referenced by a registry record. The
locator is usually a gateway URL; bare ipfs:// locators are routed through
the configured gateway.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlsplit

import httpx

from cert_verifier.errors import ContentUnavailable

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY = "https://ipfs.io"


class ContentFetcher:
    """Single-shot HTTP fetcher for certificate content.

    No retries happen here; the batch loader owns the retry policy.
    """

    def __init__(
        self,
        gateway: str = DEFAULT_GATEWAY,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            gateway: Base URL used to resolve ipfs:// locators.
            timeout: HTTP request timeout in seconds.
            verify_ssl: Whether to verify SSL certificates.
            client: Shared HTTP client. Created if not provided.
        """
        self.gateway = gateway.rstrip("/")
        self._client = client or httpx.Client(
            timeout=timeout,
            verify=verify_ssl,
            follow_redirects=True,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ContentFetcher:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def resolve_uri(self, uri: str) -> str:
        """Turn a content locator into a fetchable HTTP(S) URL.

        ipfs://<cid>/path -> <gateway>/ipfs/<cid>/path

        Raises:
            ContentUnavailable: If the locator uses an unsupported scheme.
        """
        uri = uri.strip()
        scheme = urlsplit(uri).scheme.lower()
        if scheme in ("http", "https"):
            return uri
        if scheme == "ipfs":
            path = uri[len("ipfs://"):]
            if path.startswith("ipfs/"):
                path = path[len("ipfs/"):]
            if not path:
                raise ContentUnavailable(f"Empty IPFS locator: {uri!r}")
            return f"{self.gateway}/ipfs/{path}"
        raise ContentUnavailable(f"Unsupported content locator: {uri!r}")

    def fetch(self, uri: str) -> bytes:
        """Fetch raw content bytes.

        Args:
            uri: Content locator from the registry record.

        Returns:
            The response body.

        Raises:
            ContentUnavailable: On non-2xx responses, timeouts or network errors.
        """
        url = self.resolve_uri(uri)
        logger.debug("Fetching content from %s", url)
        try:
            response = self._client.get(url, headers={"Accept": "application/json"})
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ContentUnavailable(
                f"HTTP error fetching content from {url}: {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise ContentUnavailable(f"Timed out fetching content from {url}") from e
        except httpx.RequestError as e:
            raise ContentUnavailable(f"Network error fetching content from {url}: {e}") from e
        return response.content
