"""
Exception hierarchy for sshbackup.

Every failure the pipeline can surface derives from BackupError so the
entry point can report it with a single fatal log line.
"""


class BackupError(Exception):
    """Base class for all backup pipeline errors."""
    pass


class ConfigError(BackupError):
    """Raised when startup configuration is missing or invalid."""
    pass


class NotFoundError(BackupError):
    """Raised when the source directory does not exist."""
    pass


class ArchiveError(BackupError):
    """Raised when archive creation fails."""
    pass


class EncryptionError(BackupError):
    """Raised when the archive cannot be encrypted or decrypted."""
    pass


class DeliveryError(BackupError):
    """Raised when Telegram rejects the upload or the summary message."""
    pass


class PipelineError(BackupError):
    """
    Raised by the orchestrator when a stage fails.

    Attributes:
        stage: Name of the failed stage ('archive', 'encrypt' or 'deliver')
        cause: The exception raised by the stage
    """

    def __init__(self, stage: str, cause: Exception):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} stage failed: {cause}")
