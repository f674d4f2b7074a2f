"""Unit tests for the Telegram notifier."""

import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock, patch

from news_brief.services.notifier import TelegramNotifier, encode_image_url


# Mark all tests as async
pytestmark = pytest.mark.anyio

FALLBACK = "https://images.example.com/fallback.jpg"


def _reply(body):
    mock_response = MagicMock()
    mock_response.json = MagicMock(return_value=body)
    return mock_response


def _mock_client(*outcomes):
    """Patchable httpx.AsyncClient whose post yields outcomes in order."""
    mock_instance = AsyncMock()
    mock_instance.post = AsyncMock(
        side_effect=[o if isinstance(o, Exception) else _reply(o) for o in outcomes]
    )
    mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
    mock_instance.__aexit__ = AsyncMock(return_value=None)
    return mock_instance


@pytest.fixture
def notifier():
    return TelegramNotifier("TOKEN", "@channel", fallback_image_url=FALLBACK)


def _photos(client):
    return [call.kwargs["json"]["photo"] for call in client.post.await_args_list]


class TestTelegramNotifier:
    """Tests for sending with image fallback."""

    async def test_primary_accepted(self, notifier):
        """Test that an accepted post makes exactly one request."""
        client = _mock_client({"ok": True})
        with patch("news_brief.services.notifier.httpx.AsyncClient", return_value=client):
            assert await notifier.send("<b>T</b>", "https://x/a.jpg", "https://x/a") is True

        assert client.post.await_count == 1
        url = client.post.await_args.args[0]
        assert url == "https://api.telegram.org/botTOKEN/sendPhoto"
        payload = client.post.await_args.kwargs["json"]
        assert payload["chat_id"] == "@channel"
        assert payload["photo"] == "https://x/a.jpg"
        assert payload["caption"] == "<b>T</b>"
        assert payload["parse_mode"] == "HTML"
        assert payload["reply_markup"]["inline_keyboard"][0][0] == {
            "text": "Read more",
            "url": "https://x/a",
        }

    async def test_rejected_image_uses_fallback_once(self, notifier):
        """Test that a rejected photo is retried once with the fallback image."""
        client = _mock_client(
            {"ok": False, "description": "Bad Request: wrong file identifier"},
            {"ok": True},
        )
        with patch("news_brief.services.notifier.httpx.AsyncClient", return_value=client):
            assert await notifier.send("msg", "https://x/broken.jpg", "https://x/a") is True

        assert _photos(client) == ["https://x/broken.jpg", FALLBACK]

    async def test_transport_error_uses_fallback(self, notifier):
        """Test that a network failure on the primary image falls back."""
        client = _mock_client(httpx.ConnectError("refused"), {"ok": True})
        with patch("news_brief.services.notifier.httpx.AsyncClient", return_value=client):
            assert await notifier.send("msg", "https://x/a.jpg", "https://x/a") is True

        assert _photos(client) == ["https://x/a.jpg", FALLBACK]

    async def test_both_rejected_returns_false(self, notifier):
        """Test that a rejected fallback reports failure without raising."""
        client = _mock_client({"ok": False}, {"ok": False, "description": "chat not found"})
        with patch("news_brief.services.notifier.httpx.AsyncClient", return_value=client):
            assert await notifier.send("msg", "https://x/a.jpg", "https://x/a") is False

        assert client.post.await_count == 2

    async def test_fallback_transport_error_returns_false(self, notifier):
        """Test that a network failure on the fallback reports failure."""
        client = _mock_client({"ok": False}, httpx.ReadTimeout("slow"))
        with patch("news_brief.services.notifier.httpx.AsyncClient", return_value=client):
            assert await notifier.send("msg", "https://x/a.jpg", "https://x/a") is False

    async def test_non_json_reply_falls_back(self, notifier):
        """Test that an undecodable reply counts as a failed primary post."""
        bad = MagicMock()
        bad.json = MagicMock(side_effect=ValueError("not json"))
        client = AsyncMock()
        client.post = AsyncMock(side_effect=[bad, _reply({"ok": True})])
        client.__aenter__ = AsyncMock(return_value=client)
        client.__aexit__ = AsyncMock(return_value=None)

        with patch("news_brief.services.notifier.httpx.AsyncClient", return_value=client):
            assert await notifier.send("msg", "https://x/a.jpg", "https://x/a") is True

        assert client.post.await_count == 2

    async def test_image_url_is_encoded(self, notifier):
        """Test that spaces in the article image URL are percent-encoded."""
        client = _mock_client({"ok": True})
        with patch("news_brief.services.notifier.httpx.AsyncClient", return_value=client):
            await notifier.send("msg", "https://x/my photo.jpg", "https://x/a")

        assert _photos(client) == ["https://x/my%20photo.jpg"]

    async def test_each_tier_has_its_own_transport(self, notifier):
        """Test that both posts get a retrying transport."""
        client = _mock_client({"ok": False}, {"ok": True})
        with patch("news_brief.services.notifier.httpx.AsyncClient", return_value=client) as mock_cls:
            await notifier.send("msg", "https://x/a.jpg", "https://x/a")

        assert mock_cls.call_count == 2
        for call in mock_cls.call_args_list:
            assert isinstance(call.kwargs["transport"], httpx.AsyncHTTPTransport)

    async def test_missing_credentials(self):
        """Test that a notifier cannot be built without token and channel."""
        with pytest.raises(RuntimeError, match="TELEGRAM_BOT_TOKEN"):
            TelegramNotifier("", "@channel")
        with pytest.raises(RuntimeError):
            TelegramNotifier("TOKEN", None)


class TestEncodeImageUrl:
    """Tests for image URL encoding."""

    async def test_plain_url_unchanged(self):
        """Test that an ordinary URL with a query string is left alone."""
        url = "https://cdn.example.com/a.jpg?w=800&h=400"
        assert encode_image_url(url) == url

    async def test_already_encoded_not_doubled(self):
        """Test that existing escapes survive."""
        assert encode_image_url("https://x/my%20photo.jpg") == "https://x/my%20photo.jpg"

    async def test_non_ascii(self):
        """Test that non-ASCII characters are UTF-8 percent-encoded."""
        assert encode_image_url("https://x/café.jpg") == "https://x/caf%C3%A9.jpg"
