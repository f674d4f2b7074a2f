"""Telegram channel notifier.

Articles are posted with ``sendPhoto``: the photo, an HTML caption, and a
"Read more" button linking to the article. If the article image is rejected
the post is sent once more with a fixed fallback image.
"""

import httpx
from typing import Any, Dict
from urllib.parse import quote

from news_brief.config import FALLBACK_IMAGE_URL
from news_brief.log_system.unified_logger import UnifiedLogger


TELEGRAM_API_URL = "https://api.telegram.org"

# Connection retries for each attempt
PRIMARY_IMAGE_RETRIES = 2
FALLBACK_IMAGE_RETRIES = 3

# Characters left untouched, matching a browser's encodeURI (plus '%' so
# already-encoded URLs are not encoded twice)
_URI_SAFE = ";,/?:@&=+$-_.!~*'()#%[]"


def encode_image_url(url: str) -> str:
    """Percent-encode spaces and other unsafe characters in an image URL."""
    return quote(url, safe=_URI_SAFE)


class TelegramNotifier:
    """Post articles to a Telegram channel.

    Args:
        bot_token: Bot API token
        channel_id: Channel id or @username
        fallback_image_url: Image used when the article image is rejected
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        bot_token: str,
        channel_id: str,
        fallback_image_url: str = FALLBACK_IMAGE_URL,
        timeout: float = 30.0,
    ):
        if not bot_token or not channel_id:
            raise RuntimeError(
                "TELEGRAM_BOT_TOKEN and TELEGRAM_CHANNEL_ID are required."
            )
        self._endpoint = f"{TELEGRAM_API_URL}/bot{bot_token}/sendPhoto"
        self._channel_id = channel_id
        self.fallback_image_url = fallback_image_url
        self._timeout = timeout
        self._logger = UnifiedLogger.get_logger(__name__)

    async def send(self, message: str, image_url: str, link: str) -> bool:
        """Send message with image_url, falling back to the fixed image once.

        Args:
            message: HTML caption
            image_url: Article image (may be unreachable or malformed)
            link: Article URL for the "Read more" button

        Returns:
            True if either attempt was accepted by Telegram
        """
        try:
            result = await self._post_photo(
                encode_image_url(image_url), message, link, PRIMARY_IMAGE_RETRIES
            )
            if result.get("ok"):
                return True
            self._logger.info(f"Using fallback image due to error: {result.get('description')}")
        except (httpx.HTTPError, ValueError) as e:
            self._logger.info(f"Using fallback image due to error: {e}")

        try:
            fallback_result = await self._post_photo(
                self.fallback_image_url, message, link, FALLBACK_IMAGE_RETRIES
            )
        except (httpx.HTTPError, ValueError) as e:
            self._logger.error(f"Error sending Telegram message: {e}")
            return False

        if not fallback_result.get("ok"):
            self._logger.error(
                f"Telegram fallback photo error: {fallback_result.get('description')}"
            )
            return False

        return True

    async def _post_photo(self, photo: str, caption: str, link: str, retries: int) -> Dict[str, Any]:
        """POST one sendPhoto request and return the decoded Bot API reply."""
        payload = {
            "chat_id": self._channel_id,
            "photo": photo,
            "caption": caption,
            "parse_mode": "HTML",
            "reply_markup": {
                "inline_keyboard": [[{"text": "Read more", "url": link}]],
            },
        }

        async with httpx.AsyncClient(
            timeout=self._timeout,
            transport=httpx.AsyncHTTPTransport(retries=retries),
        ) as client:
            response = await client.post(self._endpoint, json=payload)

        # Telegram reports rejected photos as 400 with {"ok": false, "description": ...}
        return response.json()
