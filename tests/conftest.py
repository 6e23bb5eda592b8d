"""
Shared pytest fixtures for sshbackup tests.

This module provides fixtures for:
- A fake ~/.ssh source directory
- Pipeline configuration pointing at temporary directories
- A fake tar binary that fails with undecodable stderr
- A fake Telegram Bot API served through httpx.MockTransport
"""

import os
import sys
import json
import tarfile

import httpx
import pytest

from sshbackup.config import PipelineConfig
from sshbackup.backup.delivery import TelegramClient


TEST_TOKEN = '123456:TEST-TOKEN'
TEST_CHAT_ID = -1001234567890
TEST_PASSPHRASE = 'correct horse battery staple'


@pytest.fixture
def ssh_dir(tmp_path):
    """
    Create a fake .ssh directory.

    Creates:
    - .ssh/id_rsa (600 bytes, mode 0600)
    - .ssh/id_rsa.pub (150 bytes, mode 0644)
    """
    source = tmp_path / 'home' / '.ssh'
    source.mkdir(parents=True)

    private_key = source / 'id_rsa'
    private_key.write_bytes(b'k' * 600)
    os.chmod(private_key, 0o600)

    public_key = source / 'id_rsa.pub'
    public_key.write_bytes(b'p' * 150)
    os.chmod(public_key, 0o644)

    return source


@pytest.fixture
def work_dir(tmp_path):
    """Temporary storage used for backup artifacts."""
    path = tmp_path / 'work'
    path.mkdir()
    return path


@pytest.fixture
def pipeline_config(ssh_dir, work_dir):
    """Pipeline configuration using the in-process archiver and encryptor."""
    return PipelineConfig(
        source_dir=str(ssh_dir),
        passphrase=TEST_PASSPHRASE,
        chat_id=TEST_CHAT_ID,
        bot_token=TEST_TOKEN,
        temp_dir=str(work_dir),
        archiver='tarfile',
        encryptor='fernet',
        telegram_api_url='https://api.telegram.test',
    )


@pytest.fixture
def sample_archive(tmp_path):
    """
    Create a sample archive file for testing.
    """
    test_dir = tmp_path / 'test_data'
    test_dir.mkdir()
    (test_dir / 'file1.txt').write_text('Content 1')
    (test_dir / 'file2.txt').write_text('Content 2')

    archive_path = tmp_path / 'test_archive.tar.gz'
    with tarfile.open(archive_path, 'w:gz') as tar:
        tar.add(test_dir, arcname='test_data')

    return archive_path


@pytest.fixture
def failing_tar(tmp_path):
    """
    Fake tar binary that writes a partial archive, prints non-UTF-8 bytes
    to stderr and exits with status 1.
    """
    if sys.platform == 'win32':
        pytest.skip("shell script tools need a POSIX shell")

    script = tmp_path / 'bin' / 'tar'
    script.parent.mkdir()
    script.write_text(
        "#!/bin/sh\n"
        "printf 'partial' > \"$2\"\n"
        "printf '\\377\\376 write error' >&2\n"
        "exit 1\n"
    )
    os.chmod(script, 0o755)
    return script


class FakeTelegramAPI:
    """
    Records Bot API calls and answers them.

    Set responses[method] = (status_code, payload) to override the default
    successful answer for a method.
    """

    def __init__(self):
        self.calls = []
        self.responses = {}
        self._message_id = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit('/', 1)[-1]
        self.calls.append({
            'method': method,
            'path': request.url.path,
            'content': request.content,
            'content_type': request.headers.get('content-type', ''),
        })

        if method in self.responses:
            status_code, payload = self.responses[method]
            if isinstance(payload, (dict, list)):
                return httpx.Response(status_code, json=payload)
            return httpx.Response(status_code, text=payload)

        if method == 'getMe':
            return httpx.Response(200, json={
                'ok': True,
                'result': {'id': 123456, 'is_bot': True, 'username': 'backup_bot'}
            })

        self._message_id += 1
        return httpx.Response(200, json={'ok': True, 'result': {'message_id': self._message_id}})

    @property
    def methods(self):
        return [call['method'] for call in self.calls]

    def sent_text(self):
        """Return the text of the last sendMessage call."""
        for call in reversed(self.calls):
            if call['method'] == 'sendMessage':
                return json.loads(call['content'])['text']
        return None


@pytest.fixture
def telegram_api():
    """Fake Telegram Bot API."""
    return FakeTelegramAPI()


@pytest.fixture
def telegram_client(telegram_api):
    """TelegramClient wired to the fake API."""
    http_client = httpx.Client(transport=httpx.MockTransport(telegram_api.handler))
    client = TelegramClient(TEST_TOKEN, 'https://api.telegram.test', http_client=http_client)
    yield client
    client.close()
