"""Message delivery through the Messenger Send API"""

from abc import ABC, abstractmethod
from typing import List, Optional

import httpx
import structlog

from chatorder.config import Settings
from chatorder.schemas.messenger import QuickReply, TemplateElement

logger = structlog.get_logger()

# Generic templates accept at most this many elements per message
MAX_TEMPLATE_ELEMENTS = 10

PERSISTENT_MENU = [
    {"type": "postback", "title": "Today's Menu", "payload": "MENU"},
    {"type": "postback", "title": "View Cart", "payload": "VIEW_CART"},
    {"type": "postback", "title": "Checkout", "payload": "CHECKOUT"},
    {"type": "postback", "title": "Place Order", "payload": "PLACE_ORDER"},
]


class MessageSender(ABC):
    """Abstract outbound channel to a Messenger user"""

    @abstractmethod
    async def send_text(self, recipient_id: str, text: str) -> None:
        pass

    @abstractmethod
    async def send_quick_replies(
        self,
        recipient_id: str,
        text: str,
        quick_replies: List[QuickReply],
    ) -> None:
        pass

    @abstractmethod
    async def send_generic_template(
        self,
        recipient_id: str,
        elements: List[TemplateElement],
    ) -> None:
        pass

    @abstractmethod
    async def setup_profile(self) -> dict:
        """Register the Get Started button and persistent menu"""
        pass


class MessengerClient(MessageSender):
    """
    Graph API implementation of MessageSender.

    Without a page access token every send is a no-op. Delivery failures are
    logged and never raised: the conversation turn has already been applied.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.access_token = settings.fb_page_access_token
        self.base_url = settings.graph_base_url
        self.timeout = settings.send_timeout_seconds
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _send(self, recipient_id: str, message: dict) -> None:
        if not self.access_token:
            return

        payload = {
            "messaging_type": "RESPONSE",
            "recipient": {"id": recipient_id},
            "message": message,
        }

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.base_url}/me/messages",
                    params={"access_token": self.access_token},
                    json=payload,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Send API rejected message",
                recipient=recipient_id,
                status_code=e.response.status_code,
                error=e.response.text[:500],
            )
        except httpx.HTTPError as e:
            logger.error("Send API request failed", recipient=recipient_id, error=str(e))

    async def send_text(self, recipient_id: str, text: str) -> None:
        await self._send(recipient_id, {"text": text})

    async def send_quick_replies(
        self,
        recipient_id: str,
        text: str,
        quick_replies: List[QuickReply],
    ) -> None:
        await self._send(
            recipient_id,
            {
                "text": text,
                "quick_replies": [reply.model_dump() for reply in quick_replies],
            },
        )

    async def send_generic_template(
        self,
        recipient_id: str,
        elements: List[TemplateElement],
    ) -> None:
        await self._send(
            recipient_id,
            {
                "attachment": {
                    "type": "template",
                    "payload": {
                        "template_type": "generic",
                        "elements": [
                            element.model_dump(exclude_none=True) for element in elements
                        ],
                    },
                },
            },
        )

    async def setup_profile(self) -> dict:
        if not self.access_token:
            return {"ok": False, "error": "Missing PAGE ACCESS TOKEN"}

        body = {
            "get_started": {"payload": "GET_STARTED"},
            "persistent_menu": [
                {
                    "locale": "default",
                    "composer_input_disabled": False,
                    "call_to_actions": PERSISTENT_MENU,
                },
            ],
        }

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.base_url}/me/messenger_profile",
                    params={"access_token": self.access_token},
                    json=body,
                )
            result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Messenger profile setup failed", error=str(e))
            return {"ok": False, "error": str(e)}

        logger.info("Messenger profile setup", status_code=response.status_code)
        return result
