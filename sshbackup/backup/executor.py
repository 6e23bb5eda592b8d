"""
Backup executor - orchestrates the complete backup workflow.

Workflow:
1. Archive the source directory into the temp directory
2. Encrypt the archive with the passphrase
3. Deliver the encrypted file and a summary to Telegram
4. Remove both temporary files, whatever happened above

States: INIT -> ARCHIVED -> ENCRYPTED -> DELIVERED -> DONE, or FAILED
from any non-terminal state.
"""

import os
import logging
from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sshbackup.config import PipelineConfig
from sshbackup.exceptions import PipelineError


logger = logging.getLogger(__name__)


class PipelineState(Enum):
    INIT = 'init'
    ARCHIVED = 'archived'
    ENCRYPTED = 'encrypted'
    DELIVERED = 'delivered'
    DONE = 'done'
    FAILED = 'failed'


def remove_artifact(path: str) -> bool:
    """
    Best-effort removal of a temporary file.

    Returns:
        True if the file was removed, False if removal failed
    """
    try:
        os.remove(path)
    except OSError as e:
        logger.warning(f"Failed to remove temporary file {path}: {e}")
        return False
    logger.debug(f"Removed temporary file {path}")
    return True


class TemporaryArtifacts:
    """
    Scope that owns temporary files.

    Paths registered inside the `with` block are removed when it exits,
    on success, on error and on KeyboardInterrupt/SystemExit alike.
    """

    def __init__(self, remover: Callable[[str], Any] = remove_artifact):
        self._remover = remover
        self._stack = ExitStack()
        self.paths: List[str] = []

    def register(self, path: str) -> str:
        self.paths.append(path)
        self._stack.callback(self._remover, path)
        return path

    def __enter__(self):
        self._stack.__enter__()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        return self._stack.__exit__(exc_type, exc_value, traceback)


@dataclass
class PipelineResult:
    state: PipelineState
    failed_stage: Optional[str] = None
    archive_name: Optional[str] = None
    encrypted_name: Optional[str] = None
    size_bytes: Optional[int] = None
    receipt: Dict[str, Any] = field(default_factory=dict)


class BackupPipeline:
    """
    Runs archive -> encrypt -> deliver once.

    Collaborators only need create(source_dir, temp_dir),
    encrypt(path, passphrase) and deliver(path) respectively.
    """

    def __init__(self, config: PipelineConfig, archiver, encryptor, deliverer,
                 artifacts_factory: Callable[[], TemporaryArtifacts] = TemporaryArtifacts):
        self.config = config
        self.archiver = archiver
        self.encryptor = encryptor
        self.deliverer = deliverer
        self._artifacts_factory = artifacts_factory
        self.state = PipelineState.INIT
        self.failed_stage = None
        self._stage = None
        self.result = PipelineResult(state=self.state)

    def run(self) -> PipelineResult:
        """
        Execute the pipeline.

        Returns:
            PipelineResult in state DONE

        Raises:
            PipelineError: If any stage fails; the stage's error is its cause
        """
        logger.info(f"Starting backup of {self.config.source_dir}")

        try:
            with self._artifacts_factory() as artifacts:
                self._execute_workflow(artifacts)
        except Exception as e:
            # Unexpected errors from collaborators are still stage failures
            self._fail(e)
        except BaseException:
            # KeyboardInterrupt/SystemExit: record the stage, propagate unwrapped
            self._mark_failed()
            raise

        self._transition(PipelineState.DONE)
        logger.info("Backup completed successfully")
        return self.result

    def _execute_workflow(self, artifacts: TemporaryArtifacts):
        # Step 1: Archive
        self._stage = 'archive'
        archive_path = artifacts.register(
            self.archiver.create(self.config.source_dir, self.config.temp_dir)
        )
        self.result.archive_name = os.path.basename(archive_path)
        self._transition(PipelineState.ARCHIVED)

        # Step 2: Encrypt
        self._stage = 'encrypt'
        encrypted_path = artifacts.register(
            self.encryptor.encrypt(archive_path, self.config.passphrase)
        )
        self.result.encrypted_name = os.path.basename(encrypted_path)
        self._transition(PipelineState.ENCRYPTED)

        # Step 3: Deliver
        self._stage = 'deliver'
        receipt = self.deliverer.deliver(encrypted_path) or {}
        self.result.receipt = receipt
        self.result.size_bytes = receipt.get('size_bytes')
        self._transition(PipelineState.DELIVERED)

    def _fail(self, error: Exception):
        self._mark_failed()
        raise PipelineError(self._stage, error) from error

    def _mark_failed(self):
        self.failed_stage = self._stage
        self.result.failed_stage = self._stage
        self._transition(PipelineState.FAILED)

    def _transition(self, state: PipelineState):
        logger.debug(f"Pipeline state: {self.state.value} -> {state.value}")
        self.state = state
        self.result.state = state
