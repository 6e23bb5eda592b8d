import os
import re
import logging
import tempfile
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from sshbackup.exceptions import ConfigError


class Config:
    """Defaults for optional settings"""

    SOURCE_DIR = os.path.join(os.path.expanduser('~'), '.ssh')
    TEMP_DIR = tempfile.gettempdir()

    # Archiver / encryptor implementations
    ARCHIVER = 'tar'
    ENCRYPTOR = 'gpg'
    ARCHIVERS = ('tar', 'tarfile')
    ENCRYPTORS = ('gpg', 'fernet')

    # Telegram
    TELEGRAM_API_URL = 'https://api.telegram.org'

    # Logging
    LOG_LEVEL = 'INFO'
    LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

    # Telegram chat ids are signed 64-bit integers
    CHAT_ID_MIN = -2 ** 63
    CHAT_ID_MAX = 2 ** 63 - 1


@dataclass(frozen=True)
class PipelineConfig:
    """
    Immutable run configuration, resolved once at startup.

    The four required fields must be non-empty; construction fails with
    ConfigError otherwise.
    """

    source_dir: str
    passphrase: str
    chat_id: int
    bot_token: str
    temp_dir: str = Config.TEMP_DIR
    archiver: str = Config.ARCHIVER
    encryptor: str = Config.ENCRYPTOR
    telegram_api_url: str = Config.TELEGRAM_API_URL
    log_level: str = Config.LOG_LEVEL
    log_file: Optional[str] = None

    def __post_init__(self):
        missing = [
            name for name in ('source_dir', 'passphrase', 'chat_id', 'bot_token')
            if getattr(self, name) in (None, '')
        ]
        if missing:
            raise ConfigError(f"Required settings are not set: {', '.join(missing)}")

        if isinstance(self.chat_id, bool) or not isinstance(self.chat_id, int):
            raise ConfigError(f"Chat id must be an integer, got {self.chat_id!r}")
        if not Config.CHAT_ID_MIN <= self.chat_id <= Config.CHAT_ID_MAX:
            raise ConfigError(f"Chat id out of 64-bit range: {self.chat_id}")

        if self.archiver not in Config.ARCHIVERS:
            raise ConfigError(
                f"Invalid archiver: {self.archiver}. Valid options: {list(Config.ARCHIVERS)}"
            )
        if self.encryptor not in Config.ENCRYPTORS:
            raise ConfigError(
                f"Invalid encryptor: {self.encryptor}. Valid options: {list(Config.ENCRYPTORS)}"
            )
        if self.log_level.upper() not in Config.LOG_LEVELS:
            raise ConfigError(
                f"Invalid log level: {self.log_level}. Valid options: {list(Config.LOG_LEVELS)}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'PipelineConfig':
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            Validated PipelineConfig

        Raises:
            ConfigError: If a required variable is missing or a value is malformed
        """
        if environ is None:
            environ = os.environ

        def get(name: str, default: Optional[str] = None) -> Optional[str]:
            value = environ.get(name, '').strip()
            return value or default

        token = get('TELEGRAM_BOT_TOKEN')
        group_id = get('TELEGRAM_GROUP_ID')
        passphrase = environ.get('ENCRYPTION_PASS', '')

        if not token or not group_id or not passphrase:
            raise ConfigError("One or more environment variables are not set "
                              "(TELEGRAM_BOT_TOKEN, TELEGRAM_GROUP_ID, ENCRYPTION_PASS)")

        # Plain ASCII digits only; int() would also take "1_000" or non-ASCII digits
        if not re.fullmatch(r'[+-]?\d+', group_id, re.ASCII):
            raise ConfigError(f"Invalid TELEGRAM_GROUP_ID format: {group_id!r}")
        chat_id = int(group_id)

        source_dir = os.path.abspath(os.path.expanduser(get('BACKUP_SOURCE_DIR', Config.SOURCE_DIR)))

        return cls(
            source_dir=source_dir,
            passphrase=passphrase,
            chat_id=chat_id,
            bot_token=token,
            temp_dir=get('BACKUP_TEMP_DIR', Config.TEMP_DIR),
            archiver=get('BACKUP_ARCHIVER', Config.ARCHIVER).lower(),
            encryptor=get('BACKUP_ENCRYPTOR', Config.ENCRYPTOR).lower(),
            telegram_api_url=get('TELEGRAM_API_URL', Config.TELEGRAM_API_URL).rstrip('/'),
            log_level=get('LOG_LEVEL', Config.LOG_LEVEL).upper(),
            log_file=get('LOG_FILE'),
        )

    def __repr__(self) -> str:
        return (
            f"PipelineConfig(source_dir={self.source_dir!r}, chat_id={self.chat_id}, "
            f"temp_dir={self.temp_dir!r}, archiver={self.archiver!r}, "
            f"encryptor={self.encryptor!r}, passphrase='***', bot_token='***')"
        )


def load_env_file(path: str = '.env') -> bool:
    """
    Load variables from a .env file into the process environment.

    Variables already present in the environment are not overridden.

    Args:
        path: Path to the .env file

    Returns:
        True if the file was found and loaded
    """
    if not os.path.exists(path):
        logging.getLogger(__name__).debug(f"No {path} file found, using process environment only")
        return False
    return load_dotenv(path, override=False)
