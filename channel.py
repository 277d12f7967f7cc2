import logging
from typing import Optional, Sequence, Tuple

import requests
from linebot import LineBotApi
from linebot.exceptions import LineBotApiError
from linebot.models import MessageAction, QuickReply, QuickReplyButton, TextSendMessage

from errors import ExtractionError

logger = logging.getLogger(__name__)

# (label, text sent when tapped)
CONFIRM_BUTTONS = (("OK", "ok"), ("Today", "today"))
COMMAND_BUTTONS = (("Today", "today"), ("Log today", "log today"), ("Help", "help"))


def build_quick_reply(buttons: Sequence[Tuple[str, str]]) -> QuickReply:
    return QuickReply(items=[
        QuickReplyButton(action=MessageAction(label=label, text=text))
        for label, text in buttons
    ])


class LineChannel:
    """
    Sends replies and pushes through the LINE Messaging API, and downloads
    the images users send.
    """

    def __init__(self, line_bot_api: LineBotApi, media_timeout: float = 15):
        self.line_bot_api = line_bot_api
        self.media_timeout = media_timeout

    def _message(self, text: str, quick_replies: Optional[Sequence[Tuple[str, str]]]) -> TextSendMessage:
        if quick_replies:
            return TextSendMessage(text=text, quick_reply=build_quick_reply(quick_replies))
        return TextSendMessage(text=text)

    def reply(self, reply_token: str, text: str, quick_replies=None):
        self.line_bot_api.reply_message(reply_token, self._message(text, quick_replies))

    def push(self, to: str, text: str, quick_replies=None):
        self.line_bot_api.push_message(to, self._message(text, quick_replies))

    def fetch_media(self, message_id: str) -> Tuple[bytes, str]:
        """
        Downloads the content of an image message.

        :return: (image bytes, content type header)
        :raises ExtractionError: when the download fails or times out.
        """
        try:
            message_content = self.line_bot_api.get_message_content(message_id, timeout=self.media_timeout)
        except LineBotApiError as e:
            raise ExtractionError(f"Could not download the photo ({e.status_code})", cause=e)
        except requests.RequestException as e:
            raise ExtractionError(f"Could not download the photo: {e}", cause=e)
        return message_content.content, message_content.content_type
