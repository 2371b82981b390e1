import logging
import os
import time
from typing import Any, Mapping, Optional, Sequence, Tuple
from urllib.parse import urljoin

import requests
from dotenv import load_dotenv

from ..validation import mask_phone, normalize_phone

logger = logging.getLogger(__name__)

DEFAULT_WHAPI_BASE_URL = "https://gate.whapi.cloud"


class WhapiClient:
    """Thin client for the Whapi WhatsApp gateway."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        load_dotenv()
        key = api_key or os.getenv("WHAPI_API_KEY")
        if not key:
            raise ValueError("Environment variable 'WHAPI_API_KEY' is not set")

        self.api_key = key
        self.base_url = (
            base_url or os.getenv("WHAPI_BASE_URL") or DEFAULT_WHAPI_BASE_URL
        ).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    # -------- headers --------
    @property
    def auth_headers(self) -> Mapping[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        r = self.session.request(
            method=method.upper(),
            url=url,
            headers=self.auth_headers,
            json=json,
            timeout=self.timeout,
        )
        if not r.ok:
            # Response bodies can echo the message text; log the status only.
            logger.error(f"Whapi API error {r.status_code} on {method.upper()} {path}")
        r.raise_for_status()
        return r.json() if r.content else None

    # -------- API callers --------
    def send_text(self, to: str, body: str) -> dict:
        """Send a plain text WhatsApp message.

        Parameters
        ----------
        to : str
            Recipient phone number. A leading ``+`` and separators are removed.
        body : str
            Message text.

        Returns
        -------
        dict
            Decoded JSON response from the gateway.

        Raises
        ------
        requests.HTTPError
            If the gateway rejects the request.
        """
        recipient = normalize_phone(to).lstrip("+")
        logger.debug(f"Sending WhatsApp text to {mask_phone(recipient)}")
        return self._request(
            "POST", "/messages/text", json={"to": recipient, "body": body}
        ) or {}

    def send_url_buttons(
        self,
        to: str,
        *,
        header: str,
        body: str,
        footer: str,
        buttons: Sequence[Tuple[str, str]],
    ) -> dict:
        """Send an interactive message with one URL button per ``(title, url)`` pair.

        Raises
        ------
        requests.HTTPError
            If the gateway rejects the request, which some accounts do for
            interactive messages.
        """
        recipient = normalize_phone(to).lstrip("+")
        stamp = int(time.time() * 1000)
        payload = {
            "to": recipient,
            "type": "button",
            "header": {"text": header},
            "body": {"text": body},
            "footer": {"text": footer},
            "action": {
                "buttons": [
                    {"type": "url", "title": title, "id": f"button_{i}_{stamp}", "url": url}
                    for i, (title, url) in enumerate(buttons)
                ]
            },
        }
        logger.debug(f"Sending WhatsApp buttons to {mask_phone(recipient)}")
        return self._request("POST", "/messages/interactive", json=payload) or {}

    @staticmethod
    def message_id(response: Mapping[str, Any]) -> str:
        """Extract the gateway's message id, falling back to ``"sent"``."""
        sent = response.get("sent")
        if isinstance(sent, Mapping) and sent.get("id"):
            return str(sent["id"])
        if response.get("message_id"):
            return str(response["message_id"])
        return "sent"
