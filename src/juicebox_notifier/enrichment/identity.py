"""ENS identity resolver - reverse-resolves addresses to ENS names."""

from __future__ import annotations

import logging

import httpx

log = logging.getLogger(__name__)


class EnsIdentityResolver:
    """Looks up the primary ENS name of an address.

    A missing name is a normal outcome, and so is any lookup failure:
    both return the raw address.
    """

    def __init__(
        self,
        resolver_url: str = "https://api.ensideas.com/ens/resolve",
        timeout: int = 10,
    ) -> None:
        self._base_url = resolver_url.rstrip("/")
        self._timeout = timeout

    async def resolve(self, address: str) -> str:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(f"{self._base_url}/{address}")
                resp.raise_for_status()
                data = resp.json()
        except Exception as exc:
            log.debug("ENS lookup failed for %s: %s", address, exc)
            return address

        name = data.get("name") if isinstance(data, dict) else None
        if name:
            return str(name)
        return address
