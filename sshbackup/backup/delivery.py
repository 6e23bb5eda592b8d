"""
Delivery of encrypted backups to a Telegram group.

The artifact is uploaded with sendDocument; only after Telegram acknowledges
the upload is the summary message posted with sendMessage.
"""

import os
import socket
import logging
from datetime import datetime
from typing import Any, BinaryIO, Dict, Optional

import httpx

from sshbackup.exceptions import DeliveryError


logger = logging.getLogger(__name__)

SUMMARY_TEMPLATE = (
    "Backup created and sent successfully!\n\n"
    "Hostname: {hostname}\n"
    "Time: {time}\n"
    "Backup Size: {size} bytes"
)


def get_hostname() -> str:
    """Return the local hostname, or 'unknown' if it cannot be resolved."""
    try:
        hostname = socket.gethostname()
    except OSError:
        return 'unknown'
    return hostname or 'unknown'


def format_timestamp(now: Optional[datetime] = None) -> str:
    """Format a time as RFC3339 with seconds resolution and UTC offset."""
    if now is None:
        now = datetime.now()
    return now.astimezone().isoformat(timespec='seconds')


def build_summary_message(hostname: str, timestamp: str, size_bytes: int) -> str:
    """Render the text posted after a successful upload."""
    return SUMMARY_TEMPLATE.format(hostname=hostname, time=timestamp, size=size_bytes)


class TelegramClient:
    """
    Minimal blocking client for the Telegram Bot API.

    Requests carry no timeout. The token is part of every URL and is never logged.
    """

    def __init__(self, bot_token: str, api_url: str = 'https://api.telegram.org',
                 http_client: Optional[httpx.Client] = None):
        """
        Args:
            bot_token: Bot credential
            api_url: Bot API base URL
            http_client: Optional preconfigured httpx client (used by tests)
        """
        self._base_url = f"{api_url.rstrip('/')}/bot{bot_token}"
        self._http = http_client or httpx.Client(timeout=None)

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def _call(self, method: str, **kwargs) -> Dict[str, Any]:
        """
        Call a Bot API method and return its result.

        Raises:
            DeliveryError: On transport errors or when Telegram answers ok=false
        """
        logger.debug(f"Telegram API call: {method}")

        try:
            response = self._http.post(f"{self._base_url}/{method}", **kwargs)
        except httpx.HTTPError as e:
            raise DeliveryError(f"Telegram {method} request failed: {type(e).__name__}: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise DeliveryError(
                f"Telegram {method} returned HTTP {response.status_code} with invalid JSON"
            ) from e

        if not isinstance(data, dict) or not data.get('ok'):
            description = data.get('description') if isinstance(data, dict) else None
            raise DeliveryError(description or f"Telegram {method} failed with HTTP {response.status_code}")

        logger.debug(f"Telegram API call {method} acknowledged")
        return data.get('result') or {}

    def get_me(self) -> Dict[str, Any]:
        """Return the bot's own user record (validates the token)."""
        return self._call('getMe')

    def send_document(self, chat_id: int, filename: str, fileobj: BinaryIO) -> Dict[str, Any]:
        return self._call(
            'sendDocument',
            data={'chat_id': str(chat_id)},
            files={'document': (filename, fileobj, 'application/octet-stream')},
        )

    def send_message(self, chat_id: int, text: str) -> Dict[str, Any]:
        return self._call('sendMessage', json={'chat_id': chat_id, 'text': text})


class TelegramDeliverer:
    """
    Sends an encrypted backup and its summary to one Telegram chat.
    """

    def __init__(self, client: TelegramClient, chat_id: int):
        self.client = client
        self.chat_id = chat_id

    def deliver(self, file_path: str) -> Dict[str, Any]:
        """
        Upload file_path, then post the summary message.

        Args:
            file_path: Encrypted artifact to send

        Returns:
            Receipt with the Telegram message ids and the delivered size

        Raises:
            DeliveryError: If the file cannot be read or either call is rejected
        """
        filename = os.path.basename(file_path)

        try:
            with open(file_path, 'rb') as f:
                size_bytes = os.fstat(f.fileno()).st_size
                logger.info(f"Uploading {filename} ({size_bytes} bytes) to chat {self.chat_id}")
                try:
                    document = self.client.send_document(self.chat_id, filename, f)
                except DeliveryError as e:
                    raise DeliveryError(f"Failed to send file to Telegram group: {e}") from e
        except OSError as e:
            raise DeliveryError(f"Failed to open file: {e}") from e

        text = build_summary_message(get_hostname(), format_timestamp(), size_bytes)
        try:
            message = self.client.send_message(self.chat_id, text)
        except DeliveryError as e:
            raise DeliveryError(f"Failed to send additional information to Telegram group: {e}") from e

        logger.info(f"Backup delivered to chat {self.chat_id}")
        return {
            'filename': filename,
            'size_bytes': size_bytes,
            'document_message_id': document.get('message_id'),
            'summary_message_id': message.get('message_id'),
        }
