import json as _json
import os
import unittest
from unittest.mock import patch

import requests

from starspin.messaging import (
    WhapiClient,
    congratulation_message,
    coupon_url,
    invitation_message,
    spin_url,
)
from starspin.messaging.messages import app_url


class DummyResponse:
    def __init__(self, json_data=None, status_code: int = 200, content: bytes = b""):
        self._json = json_data
        if json_data is not None and not content:
            content = _json.dumps(json_data).encode()
        self.content = content
        self.status_code = status_code

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        return self._json

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Error")


class DummySession:
    def __init__(self, response: DummyResponse):
        self.response = response
        self.calls = []

    def request(self, method, url, headers=None, json=None, timeout=None):
        self.calls.append(
            {
                "method": method,
                "url": url,
                "headers": headers,
                "json": json,
                "timeout": timeout,
            }
        )
        return self.response


class TestWhapiClient(unittest.TestCase):
    @patch("starspin.messaging.whapi.load_dotenv")
    def test_requires_api_key(self, mock_load_dotenv):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValueError):
                WhapiClient()

    @patch("starspin.messaging.whapi.load_dotenv")
    def test_reads_configuration_from_environment(self, mock_load_dotenv):
        env = {"WHAPI_API_KEY": "env-key", "WHAPI_BASE_URL": "https://whapi.test/"}
        with patch.dict(os.environ, env, clear=True):
            client = WhapiClient(session=DummySession(DummyResponse({})))
        self.assertEqual(client.api_key, "env-key")
        self.assertEqual(client.base_url, "https://whapi.test")

    def test_send_text_posts_message(self):
        session = DummySession(DummyResponse({"sent": {"id": "abc"}}))
        client = WhapiClient(api_key="key", session=session, timeout=5)

        response = client.send_text("+33 6 12 34 56 78", "Hello")

        self.assertEqual(response, {"sent": {"id": "abc"}})
        call = session.calls[0]
        self.assertEqual(call["method"], "POST")
        self.assertEqual(call["url"], "https://gate.whapi.cloud/messages/text")
        self.assertEqual(call["json"], {"to": "33612345678", "body": "Hello"})
        self.assertEqual(call["headers"]["Authorization"], "Bearer key")
        self.assertEqual(call["timeout"], 5)

    def test_http_error_propagates(self):
        session = DummySession(DummyResponse({"error": "unauthorized"}, status_code=401))
        client = WhapiClient(api_key="key", session=session)
        with self.assertLogs("starspin.messaging.whapi", level="ERROR"):
            with self.assertRaises(requests.HTTPError):
                client.send_text("+33612345678", "Hello")

    def test_empty_body_returns_empty_dict(self):
        session = DummySession(DummyResponse(content=b""))
        client = WhapiClient(api_key="key", session=session)
        self.assertEqual(client.send_text("33612345678", "Hi"), {})

    def test_message_id_extraction(self):
        self.assertEqual(WhapiClient.message_id({"sent": {"id": "a1"}}), "a1")
        self.assertEqual(WhapiClient.message_id({"sent": True, "message_id": "b2"}), "b2")
        self.assertEqual(WhapiClient.message_id({}), "sent")

    @patch("starspin.messaging.whapi.time.time", return_value=1.5)
    def test_send_url_buttons_posts_interactive_message(self, mock_time):
        session = DummySession(DummyResponse({"sent": {"id": "i1"}}))
        client = WhapiClient(api_key="key", session=session)

        client.send_url_buttons(
            "+33612345678",
            header="Hi",
            body="Body",
            footer="Foot",
            buttons=[("Spin", "https://x.test/spin/1"), ("Card", "https://x.test/card/q")],
        )

        call = session.calls[0]
        self.assertEqual(call["url"], "https://gate.whapi.cloud/messages/interactive")
        payload = call["json"]
        self.assertEqual(payload["to"], "33612345678")
        self.assertEqual(payload["type"], "button")
        self.assertEqual(payload["footer"], {"text": "Foot"})
        self.assertEqual(
            payload["action"]["buttons"],
            [
                {"type": "url", "title": "Spin", "id": "button_0_1500", "url": "https://x.test/spin/1"},
                {"type": "url", "title": "Card", "id": "button_1_1500", "url": "https://x.test/card/q"},
            ],
        )


class TestMessages(unittest.TestCase):
    def test_urls(self):
        self.assertEqual(
            spin_url("abc", base_url="https://x.test/"), "https://x.test/spin/abc"
        )
        self.assertEqual(
            spin_url("abc", phone="+331", base_url="https://x.test"),
            "https://x.test/spin/abc?phone=%2B331",
        )
        self.assertEqual(
            spin_url("abc", phone="+331", base_url="https://x.test", language="en"),
            "https://x.test/spin/abc?phone=%2B331&lang=en",
        )
        self.assertEqual(
            coupon_url("abc", "CAF-12AB34CD", base_url="https://x.test"),
            "https://x.test/coupon/abc?code=CAF-12AB34CD",
        )

    @patch("starspin.messaging.messages.load_dotenv")
    def test_app_url_from_environment(self, mock_load_dotenv):
        with patch.dict(os.environ, {"STARSPIN_APP_URL": "https://app.test/"}, clear=True):
            self.assertEqual(app_url(), "https://app.test")
        with patch.dict(os.environ, {}, clear=True):
            self.assertEqual(app_url(), "https://starspin.netlify.app")

    def test_invitation_falls_back_to_french(self):
        body = invitation_message("Shop", "https://x.test/spin/1", language="xx")
        self.assertIn("Tournez la roue maintenant", body)
        self.assertIn("https://x.test/spin/1", body)
        self.assertTrue(body.startswith("🎉 *Shop*"))

    def test_congratulation_languages(self):
        english = congratulation_message("Cake", "https://x.test/c", language="en")
        self.assertIn("You won: *Cake*!", english)
        self.assertIn("https://x.test/c", english)
        fallback = congratulation_message("Cake", "https://x.test/c", language="xx")
        self.assertIn("Vous avez gagné : *Cake*", fallback)


if __name__ == "__main__":
    unittest.main()
