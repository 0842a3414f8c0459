"""
HTTP client factory for the fetch layer.
Handles configuration and initialization of the shared httpx client.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ...config import Settings


class HttpClientFactory:
    """Factory for creating the configured backend HTTP client."""

    @staticmethod
    def create_client(
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> httpx.AsyncClient:
        """
        Create an httpx client pointed at the backend.

        Args:
            settings: Application settings
            transport: Optional transport override (tests, proxies)

        Returns:
            Configured async httpx client
        """
        client_kwargs = HttpClientFactory._build_httpx_config(settings)
        if transport is not None:
            client_kwargs["transport"] = transport

        client = httpx.AsyncClient(**client_kwargs)
        logging.getLogger(settings.app_name).debug(
            "HTTP client configured for %s", settings.base_url
        )
        return client

    @staticmethod
    def _build_httpx_config(settings: Settings) -> Dict[str, Any]:
        """Build httpx client configuration."""
        attempt_timeout = settings.http_attempt_timeout_seconds
        return {
            "base_url": settings.base_url,
            "timeout": httpx.Timeout(
                attempt_timeout,
                connect=min(settings.http_connect_timeout, attempt_timeout),
            ),
            "headers": HttpClientFactory.get_default_headers(settings),
            "follow_redirects": True,
        }

    @staticmethod
    async def close_client(client: Optional[httpx.AsyncClient]) -> None:
        """
        Close an HTTP client to avoid resource leaks.

        Args:
            client: HTTP client to close
        """
        if client is None or client.is_closed:
            return
        await client.aclose()

    @staticmethod
    def get_default_headers(settings: Settings) -> Dict[str, str]:
        """
        Get default headers for backend requests.

        Args:
            settings: Application settings

        Returns:
            Dictionary of default headers
        """
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"{settings.app_name}/{settings.app_version}",
        }
