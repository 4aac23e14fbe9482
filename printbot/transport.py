import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger("printbot.transport")


class ChatTransport(ABC):

    @abstractmethod
    async def reply(self, conversation_id: str, text: str) -> str:
        """Send a reply in the conversation; returns the outbound message id."""

    @abstractmethod
    async def edit_last_reply(self, conversation_id: str, text: str) -> None:
        ...

    @abstractmethod
    async def send(self, recipient_id: str, text: str) -> None:
        """Unprompted message to a sender (broadcast)."""


class OutboxTransport(ChatTransport):
    """Keeps outbound events in memory until the chat gateway polls them."""

    def __init__(self):
        self._outbox: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self._last_reply: Dict[str, str] = {}

    async def reply(self, conversation_id, text):
        message_id = uuid.uuid4().hex
        self._outbox[conversation_id].append({"id": message_id, "type": "reply", "text": text})
        self._last_reply[conversation_id] = message_id
        return message_id

    async def edit_last_reply(self, conversation_id, text):
        message_id = self._last_reply.get(conversation_id)
        if message_id is None:
            await self.reply(conversation_id, text)
            return
        self._outbox[conversation_id].append({"id": message_id, "type": "edit", "text": text})

    async def send(self, recipient_id, text):
        self._outbox[recipient_id].append({"id": uuid.uuid4().hex, "type": "message", "text": text})

    def drain(self, conversation_id: str) -> List[Dict[str, Any]]:
        return self._outbox.pop(conversation_id, [])

    def peek(self, conversation_id: str) -> List[Dict[str, Any]]:
        return list(self._outbox.get(conversation_id, []))


class WebhookTransport(ChatTransport):
    """Posts outbound events to a chat gateway over HTTP."""

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: int = 15):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._last_reply: Dict[str, str] = {}

    def _headers(self) -> Dict[str, str]:
        h: Dict[str, str] = {"Content-Type": "application/json"}
        if self.token:
            h["X-Bot-Token"] = self.token
        return h

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        r = requests.post(f"{self.base_url}{path}", json=payload, headers=self._headers(), timeout=self.timeout)
        r.raise_for_status()
        return r.json() if r.content else {}

    async def reply(self, conversation_id, text):
        data = await asyncio.to_thread(self._post, "/messages", {"conversation_id": conversation_id, "text": text})
        message_id = str(data.get("message_id") or uuid.uuid4().hex)
        self._last_reply[conversation_id] = message_id
        return message_id

    async def edit_last_reply(self, conversation_id, text):
        message_id = self._last_reply.get(conversation_id)
        if message_id is None:
            await self.reply(conversation_id, text)
            return
        await asyncio.to_thread(
            self._post, f"/messages/{message_id}/edit", {"conversation_id": conversation_id, "text": text}
        )

    async def send(self, recipient_id, text):
        await asyncio.to_thread(self._post, "/messages", {"recipient_id": recipient_id, "text": text})
