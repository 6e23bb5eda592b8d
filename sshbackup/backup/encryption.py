"""
Symmetric encryption of backup archives.

Supports:
- GpgEncryptor: `gpg --symmetric` in batch mode, output suffix .gpg
- FernetEncryptor: PBKDF2 + Fernet from the cryptography package, output suffix .enc

Encryptors never delete their input; removing the plaintext archive is the
caller's job.
"""

import os
import logging
import subprocess

from cryptography.fernet import InvalidToken

from sshbackup.exceptions import EncryptionError
from sshbackup.utils.crypto import SALT_LENGTH, derive_fernet, generate_salt


logger = logging.getLogger(__name__)


def _remove_partial(path: str):
    if os.path.exists(path):
        try:
            os.remove(path)
        except OSError as e:
            logger.warning(f"Failed to remove partial output {path}: {e}")


class Encryptor:
    """
    Base encryptor.

    The encrypted artifact is written next to the input as input path + suffix,
    overwriting any existing file.
    """

    suffix = ''

    def output_path_for(self, input_path: str) -> str:
        return f"{input_path}{self.suffix}"

    def encrypt(self, input_path: str, passphrase: str) -> str:
        """
        Encrypt a file with a passphrase.

        Args:
            input_path: Plaintext file to encrypt
            passphrase: Non-empty passphrase

        Returns:
            Path to the encrypted file

        Raises:
            EncryptionError: If encryption fails
        """
        if not passphrase:
            raise EncryptionError("Encryption passphrase is required")
        if not os.path.isfile(input_path):
            raise EncryptionError(f"File to encrypt not found: {input_path}")

        output_path = self.output_path_for(input_path)

        # Partial output is removed on every exit before the caller owns it
        try:
            try:
                self._encrypt(input_path, passphrase, output_path)
            except OSError as e:
                raise EncryptionError(f"Failed to encrypt file: {e}") from e
        except BaseException:
            _remove_partial(output_path)
            raise

        logger.info(f"Encrypted file created: {os.path.basename(output_path)}")
        return output_path

    def _encrypt(self, input_path: str, passphrase: str, output_path: str):
        raise NotImplementedError


class GpgEncryptor(Encryptor):
    """Encrypts with `gpg --symmetric`; the passphrase goes over stdin."""

    suffix = '.gpg'

    def __init__(self, gpg_binary: str = 'gpg'):
        self.gpg_binary = gpg_binary

    def _encrypt(self, input_path: str, passphrase: str, output_path: str):
        command = [
            self.gpg_binary,
            '--batch', '--yes',
            '--pinentry-mode', 'loopback',
            '--passphrase-fd', '0',
            '--symmetric',
            '--output', output_path,
            input_path,
        ]
        logger.debug(f"Running: {' '.join(command)}")

        try:
            result = subprocess.run(
                command,
                input=passphrase,
                capture_output=True,
                text=True,
                errors='replace',
                check=False
            )
        except FileNotFoundError as e:
            raise EncryptionError(f"Encryption tool not found: {self.gpg_binary}") from e

        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit status {result.returncode}"
            raise EncryptionError(f"Failed to encrypt file with gpg: {detail}")


class FernetEncryptor(Encryptor):
    """
    Encrypts with a passphrase-derived Fernet key.

    File layout: salt (16 bytes) followed by the Fernet token.
    """

    suffix = '.enc'

    def _encrypt(self, input_path: str, passphrase: str, output_path: str):
        salt = generate_salt()
        fernet = derive_fernet(passphrase, salt)

        with open(input_path, 'rb') as f:
            token = fernet.encrypt(f.read())

        with open(output_path, 'wb') as f:
            f.write(salt)
            f.write(token)

    def decrypt(self, input_path: str, passphrase: str, output_path: str) -> str:
        """
        Decrypt a file produced by encrypt().

        Args:
            input_path: Encrypted file
            passphrase: Passphrase used for encryption
            output_path: Destination of the plaintext

        Returns:
            output_path

        Raises:
            EncryptionError: If the passphrase is wrong or the file is corrupted
        """
        if not passphrase:
            raise EncryptionError("Encryption passphrase is required")

        try:
            with open(input_path, 'rb') as f:
                data = f.read()
        except OSError as e:
            raise EncryptionError(f"Failed to read encrypted file: {e}") from e

        if len(data) <= SALT_LENGTH:
            raise EncryptionError("Encrypted file is truncated")

        fernet = derive_fernet(passphrase, data[:SALT_LENGTH])
        try:
            plaintext = fernet.decrypt(data[SALT_LENGTH:])
        except InvalidToken as e:
            raise EncryptionError("Invalid passphrase or corrupted file") from e

        with open(output_path, 'wb') as f:
            f.write(plaintext)
        return output_path


ENCRYPTORS = {
    'gpg': GpgEncryptor,
    'fernet': FernetEncryptor,
}


def create_encryptor(name: str) -> Encryptor:
    """
    Factory for encryptors by configuration name.

    Raises:
        ValueError: If name is not a known encryptor
    """
    if name not in ENCRYPTORS:
        raise ValueError(f"Invalid encryptor: {name}. Valid options: {list(ENCRYPTORS.keys())}")
    return ENCRYPTORS[name]()
