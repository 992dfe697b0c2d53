"""
Minimal A2A (agent-to-agent) JSON-RPC client.

Only what a sub-agent tool needs: resolve the agent card, then send one
blocking ``message/send`` request per invocation.
"""

import uuid
from typing import Any, Optional

import httpx

from loopagent.errors import A2AError
from loopagent.utils.logger import get_logger

log = get_logger(__name__)

AGENT_CARD_PATH = "/.well-known/agent-card.json"
DEFAULT_TIMEOUT = 300.0


def agent_card_location(url: str) -> str:
    if url.endswith(".json"):
        return url
    return url.rstrip("/") + AGENT_CARD_PATH


class A2AClient:
    """
    JSON-RPC client for one remote agent. An ``http_client`` passed in stays
    the caller's; ``aclose`` only closes a client this object created.
    """

    def __init__(
        self,
        agent_card: dict[str, Any],
        http_client: Optional[httpx.AsyncClient] = None,
        owns_http: bool = False,
    ) -> None:
        if not agent_card.get("url"):
            raise A2AError("Agent card has no 'url' field")
        self.agent_card = agent_card
        self.url: str = agent_card["url"]
        self._owns_http = owns_http or http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        self._request_id = 0

    @classmethod
    async def from_card_url(
        cls, url: str, http_client: Optional[httpx.AsyncClient] = None
    ) -> "A2AClient":
        owns_http = http_client is None
        http = http_client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        location = agent_card_location(url)
        try:
            try:
                response = await http.get(location)
                response.raise_for_status()
                card = response.json()
            except (httpx.HTTPError, ValueError) as e:
                raise A2AError(
                    f"Failed to fetch agent card from {location}: {e}"
                ) from e
            if not isinstance(card, dict):
                raise A2AError(f"Agent card at {location} is not a JSON object")
            client = cls(card, http_client=http, owns_http=owns_http)
        except A2AError:
            if owns_http:
                await http.aclose()
            raise
        log.debug(f"Resolved agent card {card.get('name')} at {location}")
        return client

    async def _rpc(self, method: str, params: dict[str, Any]) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        try:
            response = await self._http.post(self.url, json=payload)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise A2AError(f"{method} request to {self.url} failed: {e}") from e

        if body.get("error"):
            error = body["error"]
            raise A2AError(error.get("message", "Unknown error"), code=error.get("code"))
        return body.get("result")

    async def send_message(self, text: str, blocking: bool = True) -> dict[str, Any]:
        """Send one user text message; returns a Message or Task object."""
        result = await self._rpc(
            "message/send",
            {
                "message": {
                    "kind": "message",
                    "messageId": str(uuid.uuid4()),
                    "role": "user",
                    "parts": [{"kind": "text", "text": text}],
                },
                "configuration": {"blocking": blocking},
            },
        )
        if not isinstance(result, dict):
            raise A2AError(f"Unexpected message/send result: {result!r}")
        return result

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()


class RemoteAgentClientFactory:
    """
    Creates one A2AClient per agent card URL and reuses it. The factory owns
    ``http_client`` when one is given and closes it in ``aclose``.
    """

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self._http = http_client
        self._clients: dict[str, A2AClient] = {}

    async def create_from_url(self, url: str) -> A2AClient:
        client = self._clients.get(url)
        if client is None:
            client = await A2AClient.from_card_url(url, http_client=self._http)
            self._clients[url] = client
        return client

    async def aclose(self) -> None:
        for client in self._clients.values():
            await client.aclose()
        self._clients.clear()
        if self._http is not None:
            await self._http.aclose()


def extract_text_from_parts(parts: list[dict[str, Any]]) -> str:
    return "\n".join(
        p["text"] for p in parts if p.get("kind") == "text" and "text" in p
    )


def extract_text_from_result(result: dict[str, Any]) -> str:
    """Text of a Message, or of a Task's status message. No text gives ''."""
    if result.get("kind") == "message":
        return extract_text_from_parts(result.get("parts") or [])
    parts = ((result.get("status") or {}).get("message") or {}).get("parts")
    if parts:
        return extract_text_from_parts(parts)
    return ""
