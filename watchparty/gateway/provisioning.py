"""Provisioning of the hosted interactive session (Hyperbeam)"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp

from .session_state import SessionDescriptor

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.hyperbeam.com/v0"


class ProvisioningError(Exception):
    pass


class ProvisioningUnavailable(ProvisioningError):
    """Network failure or timeout talking to the provisioning service"""


class ProvisioningTimeout(ProvisioningUnavailable):
    pass


class ProvisioningAuthError(ProvisioningError):
    pass


class ProvisioningNotFound(ProvisioningError):
    pass


class ProvisioningProvider(ABC):
    def __init__(self, name: str, base_url: str, api_key: Optional[str] = None):
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    @abstractmethod
    async def create_remote_session(self) -> SessionDescriptor:
        pass

    @abstractmethod
    async def destroy_remote_session(self, session_id: str) -> None:
        pass


class HyperbeamProvisioner(ProvisioningProvider):
    """Creates and destroys Hyperbeam virtual browsers over the REST API"""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_API_URL,
        start_url: Optional[str] = None,
        region: Optional[str] = None,
        timeout: float = 30.0,
    ):
        super().__init__("hyperbeam", base_url, api_key)
        self.start_url = start_url
        self.region = region
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _vm_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if self.start_url:
            body["start_url"] = self.start_url
        if self.region:
            body["region"] = self.region
        return body

    async def _raise_for_status(self, response: aiohttp.ClientResponse, action: str):
        if response.status < 300:
            return
        detail = (await response.text())[:200]
        if response.status in (401, 403):
            raise ProvisioningAuthError(f"Hyperbeam rejected credentials while trying to {action}")
        if response.status == 404:
            raise ProvisioningNotFound(f"Hyperbeam could not {action}: not found")
        raise ProvisioningError(f"Hyperbeam error while trying to {action}: {response.status} {detail}")

    async def create_remote_session(self) -> SessionDescriptor:
        url = f"{self.base_url}/vm"
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, json=self._vm_body(), headers=self._headers()) as response:
                    await self._raise_for_status(response, "create a session")
                    data = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise ProvisioningTimeout("Hyperbeam did not answer in time") from e
        except aiohttp.ClientError as e:
            raise ProvisioningUnavailable(f"Cannot connect to Hyperbeam: {e}") from e
        except ValueError as e:
            raise ProvisioningError(f"Hyperbeam returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ProvisioningError("Hyperbeam returned an unexpected payload")
        # v0 answers with session_id/embed_url; older deployments used vmId/embedUrl
        session_id = data.get("session_id") or data.get("vmId")
        embed_url = data.get("embed_url") or data.get("embedUrl")
        if not session_id or not embed_url:
            raise ProvisioningError("Hyperbeam response is missing the session id or embed URL")

        logger.info(f"Hyperbeam session created: {session_id}")
        return SessionDescriptor(session_id=str(session_id), embed_url=str(embed_url))

    async def destroy_remote_session(self, session_id: str) -> None:
        url = f"{self.base_url}/vm/{session_id}"
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.delete(url, headers=self._headers()) as response:
                    await self._raise_for_status(response, f"destroy session {session_id}")
        except asyncio.TimeoutError as e:
            raise ProvisioningTimeout("Hyperbeam did not answer in time") from e
        except aiohttp.ClientError as e:
            raise ProvisioningUnavailable(f"Cannot connect to Hyperbeam: {e}") from e

        logger.info(f"Hyperbeam session destroyed: {session_id}")
