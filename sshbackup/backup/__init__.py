"""
Backup module for sshbackup.

This module handles the core backup functionality including:
- Archiving the source directory
- Encrypting the archive
- Delivery to Telegram
- Execution orchestration and temporary file cleanup
"""

from .executor import BackupPipeline, PipelineState, TemporaryArtifacts
from .compression import TarCommandArchiver, TarfileArchiver, create_archiver
from .encryption import GpgEncryptor, FernetEncryptor, create_encryptor
from .delivery import TelegramClient, TelegramDeliverer

__all__ = [
    'BackupPipeline',
    'PipelineState',
    'TemporaryArtifacts',
    'TarCommandArchiver',
    'TarfileArchiver',
    'create_archiver',
    'GpgEncryptor',
    'FernetEncryptor',
    'create_encryptor',
    'TelegramClient',
    'TelegramDeliverer'
]
