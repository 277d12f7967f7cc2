import base64
import hashlib
import hmac
import io
import json

import pytest
from fastapi.testclient import TestClient

import config
import main
import messages
from channel import COMMAND_BUTTONS, CONFIRM_BUTTONS
from controller import ConversationController
from errors import ExtractionError
from scheduler import DailyFlushScheduler


class InlineExecutor:
    def submit(self, fn, *args):
        fn(*args)


def sign(body: str) -> str:
    digest = hmac.new(config.SECRET_CHANNEL.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def line_event(message, user_id="U1", reply_token="reply-token"):
    return json.dumps({
        "destination": "Ubot",
        "events": [{
            "type": "message",
            "mode": "active",
            "timestamp": 1773446400000,
            "webhookEventId": "01HXYZ",
            "deliveryContext": {"isRedelivery": False},
            "replyToken": reply_token,
            "source": {"type": "user", "userId": user_id},
            "message": message,
        }]
    })


@pytest.fixture
def client(monkeypatch, store, extractor, ledger, channel):
    monkeypatch.setattr(main, "channel", channel)
    monkeypatch.setattr(main, "controller", ConversationController(store, extractor, ledger, channel))
    monkeypatch.setattr(main, "executor", InlineExecutor())
    monkeypatch.setattr(main, "session_store", store)
    return TestClient(main.app)


def post_event(client, body, signature=None):
    return client.post(
        "/webhook",
        content=body,
        headers={"X-Line-Signature": signature if signature is not None else sign(body),
                 "Content-Type": "application/json"},
    )


def test_text_command_is_answered_with_reply_token(client, channel):
    response = post_event(client, line_event({"id": "1", "type": "text", "text": "help"}))

    assert response.status_code == 200
    assert channel.replies == [("reply-token", messages.HELP, COMMAND_BUTTONS)]


def test_invalid_signature_is_rejected(client, channel):
    response = post_event(client, line_event({"id": "1", "type": "text", "text": "help"}), signature="bogus")

    assert response.status_code == 400
    assert channel.replies == []


def test_photo_is_acknowledged_then_result_pushed(client, channel, store, extractor, chicken_salad):
    extractor.results.append(chicken_salad)

    response = post_event(client, line_event({"id": "200", "type": "image", "contentProvider": {"type": "line"}}))

    assert response.status_code == 200
    assert channel.replies == [("reply-token", messages.ANALYZING, None)]
    to, text, quick_replies = channel.pushes[0]
    assert to == "U1"
    assert "Chicken salad" in text
    assert quick_replies == CONFIRM_BUTTONS
    assert store.get_or_create("U1").pending == chicken_salad


def test_photo_error_is_pushed(client, channel, extractor):
    extractor.results.append(ExtractionError("Error from vision API (500)"))

    post_event(client, line_event({"id": "200", "type": "image", "contentProvider": {"type": "line"}}))

    assert channel.pushes == [("U1", "❌ Error: Error from vision API (500)", None)]


def test_photo_then_confirm_over_webhook(client, channel, store, extractor, chicken_salad):
    extractor.results.append(chicken_salad)
    post_event(client, line_event({"id": "200", "type": "image", "contentProvider": {"type": "line"}}))

    post_event(client, line_event({"id": "2", "type": "text", "text": "OK"}, reply_token="second"))

    token, text, _ = channel.replies[-1]
    assert token == "second"
    assert "logged!" in text
    assert len(store.get_or_create("U1").meals) == 1


def test_unexpected_error_gets_generic_reply(client, monkeypatch, channel):
    class Broken:
        def handle_text(self, sender, text):
            raise RuntimeError("boom")

    monkeypatch.setattr(main, "controller", Broken())

    response = post_event(client, line_event({"id": "1", "type": "text", "text": "today"}))

    assert response.status_code == 200
    assert channel.replies == [("reply-token", messages.GENERIC_FAILURE, None)]


def test_analyze_endpoint(client, monkeypatch, extractor, chicken_salad):
    extractor.results.append(chicken_salad)
    monkeypatch.setattr(main, "extractor", extractor)

    response = client.post("/analyze", files={"file": ("meal.jpg", io.BytesIO(b"jpeg-bytes"), "image/jpeg")})

    assert response.status_code == 200
    assert response.json()["meal"] == "Chicken salad"
    assert extractor.calls == [(b"jpeg-bytes", "image/jpeg")]


def test_analyze_endpoint_error(client, monkeypatch, extractor):
    extractor.results.append(ExtractionError("Unexpected response from vision API"))
    monkeypatch.setattr(main, "extractor", extractor)

    response = client.post("/analyze", files={"file": ("meal.jpg", io.BytesIO(b"jpeg-bytes"), "image/jpeg")})

    assert response.status_code == 502


def test_debug_flush(client, monkeypatch, store, ledger, channel, chicken_salad):
    session = store.get_or_create("U1")
    session.await_confirmation(chicken_salad)
    session.confirm()
    monkeypatch.setattr(main, "scheduler", DailyFlushScheduler(store, ledger, channel))

    response = client.post("/debug/flush")

    assert response.json() == {"status": "success", "flushed": 1}
    assert len(ledger.rows) == 1


def test_health(client, store):
    store.get_or_create("U1")

    assert client.get("/health").json() == {"status": "ok", "sessions": 1}


def test_photo_error_with_older_meal_pending_has_no_confirm_buttons(client, channel, store, extractor, chicken_salad):
    image = {"id": "200", "type": "image", "contentProvider": {"type": "line"}}
    extractor.results.extend([chicken_salad, ExtractionError("Error from vision API (500)")])
    post_event(client, line_event(image))

    post_event(client, line_event(dict(image, id="201"), reply_token="second"))

    assert store.get_or_create("U1").pending == chicken_salad
    assert channel.pushes[-1] == ("U1", "❌ Error: Error from vision API (500)", None)
