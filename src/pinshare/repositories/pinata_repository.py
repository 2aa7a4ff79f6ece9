import json
import logging
from pathlib import Path
from typing import Any, Optional

import httpx

from pinshare.config import PinataConfig
from pinshare.exceptions import PinServiceConfigError, PinServiceError

logger = logging.getLogger(__name__)


class PinataRepository:
    """
    Boundary to the Pinata pinning API. Every call is a single attempt;
    retry policy belongs to the caller.
    """

    def __init__(self, settings: PinataConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.api_url,
            timeout=httpx.Timeout(settings.timeout_seconds),
            transport=transport,
        )

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    def _auth_headers(self) -> dict[str, str]:
        if not self.is_configured:
            raise PinServiceConfigError("Pinata configuration not available")
        if self._settings.jwt:
            return {"Authorization": f"Bearer {self._settings.jwt}"}
        return {
            "pinata_api_key": self._settings.api_key,
            "pinata_secret_api_key": self._settings.secret_key,
        }

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        headers = self._auth_headers()
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise PinServiceError(f"Pinata {method} {url} timed out", detail=str(e)) from e
        except httpx.HTTPError as e:
            raise PinServiceError(f"Pinata {method} {url} failed: {e}", detail=str(e)) from e

        if not response.is_success:
            detail = response.text[:500]
            raise PinServiceError(
                f"Pinata {method} {url} returned {response.status_code}",
                status_code=response.status_code,
                detail=detail,
            )
        return response

    async def check_connection(self):
        """Verifies the credentials against the gateway."""
        logger.debug("Checking Pinata authentication...")
        await self._request("GET", "/data/testAuthentication")
        logger.debug("Pinata authentication confirmed.")

    async def submit(self, path: Path, metadata: dict[str, Any]) -> str:
        """Streams the file plus a metadata envelope and returns the content address."""
        path = Path(path)
        pinata_metadata = {
            "name": metadata.get("name", path.name),
            "keyvalues": {k: str(v) for k, v in metadata.items() if k != "name"},
        }
        data = {
            "pinataMetadata": json.dumps(pinata_metadata),
            "pinataOptions": json.dumps({"cidVersion": self._settings.cid_version}),
        }
        with open(path, "rb") as fh:
            response = await self._request(
                "POST",
                "/pinning/pinFileToIPFS",
                files={"file": (pinata_metadata["name"], fh, "application/octet-stream")},
                data=data,
            )
        try:
            cid = response.json()["IpfsHash"]
        except (ValueError, KeyError, TypeError) as e:
            raise PinServiceError(
                "Pinata reply did not contain IpfsHash", status_code=response.status_code, detail=response.text[:500]
            ) from e
        logger.info(f"Pinned '{pinata_metadata['name']}' as {cid}")
        return cid

    async def unpin(self, cid: str) -> None:
        await self._request("DELETE", f"/pinning/unpin/{cid}")
        logger.info(f"Unpinned {cid}")

    def gateway_url(self, cid: str) -> str:
        return f"{self._settings.gateway_url.rstrip('/')}/ipfs/{cid}"

    async def aclose(self) -> None:
        await self._client.aclose()
