"""
Command-line entry point: run the backup pipeline once and exit.

Exit status is 0 when the backup was delivered and 1 otherwise.
"""

import signal
import logging
import sys
from typing import Mapping, Optional

from sshbackup import configure_logging
from sshbackup.config import PipelineConfig, load_env_file
from sshbackup.exceptions import BackupError, ConfigError, DeliveryError, PipelineError
from sshbackup.backup.compression import create_archiver
from sshbackup.backup.delivery import TelegramClient, TelegramDeliverer
from sshbackup.backup.encryption import create_encryptor
from sshbackup.backup.executor import BackupPipeline


logger = logging.getLogger(__name__)


def _raise_system_exit(signum, frame):
    # Turn SIGTERM into SystemExit so the cleanup scope still unwinds
    raise SystemExit(128 + signum)


def install_signal_handlers():
    signal.signal(signal.SIGTERM, _raise_system_exit)


def run_backup(config: PipelineConfig, client: Optional[TelegramClient] = None):
    """
    Verify the bot token, then run the pipeline.

    Args:
        config: Validated configuration
        client: Telegram client (built from config if None)

    Returns:
        PipelineResult

    Raises:
        ConfigError: If Telegram rejects the bot token
        PipelineError: If a stage fails
    """
    if client is None:
        client = TelegramClient(config.bot_token, config.telegram_api_url)

    with client:
        try:
            bot = client.get_me()
        except DeliveryError as e:
            raise ConfigError(f"Telegram bot authentication failed: {e}") from e
        logger.info(f"Authorized on account {bot.get('username', 'unknown')}")

        pipeline = BackupPipeline(
            config,
            archiver=create_archiver(config.archiver),
            encryptor=create_encryptor(config.encryptor),
            deliverer=TelegramDeliverer(client, config.chat_id),
        )
        return pipeline.run()


def main(environ: Optional[Mapping[str, str]] = None) -> int:
    """Load configuration, run one backup and return the exit status."""
    if environ is None:
        load_env_file()

    try:
        config = PipelineConfig.from_env(environ)
    except ConfigError as e:
        configure_logging()
        logger.critical(f"Configuration error: {e}")
        return 1

    try:
        configure_logging(config.log_level, config.log_file)
    except OSError as e:
        configure_logging(config.log_level)
        logger.critical(f"Configuration error: cannot open LOG_FILE {config.log_file}: {e}")
        return 1

    install_signal_handlers()
    logger.debug(f"Loaded {config!r}")

    try:
        result = run_backup(config)
    except PipelineError as e:
        logger.critical(f"Backup failed at {e.stage} stage: {e.cause}")
        return 1
    except BackupError as e:
        logger.critical(f"Backup aborted: {e}")
        return 1

    logger.info(f"Backup {result.encrypted_name} delivered ({result.size_bytes} bytes)")
    return 0


if __name__ == '__main__':
    sys.exit(main())
