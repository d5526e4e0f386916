"""Cryptographic utilities."""

import secrets

from cryptography.fernet import Fernet

SECRET_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789!@#%^&*"
DB_PASSWORD_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789!@#$%"


def generate_secret_key() -> str:
    """Generate a new Fernet-compatible secret key.

    Returns:
        Base64-encoded 32-byte key suitable for Fernet encryption
    """
    return Fernet.generate_key().decode()


def generate_remote_secret(length: int = 24) -> str:
    """Generate the remote-access secret injected through cloud-init.

    Args:
        length: Number of characters

    Returns:
        Random string drawn from a shell- and YAML-tolerant alphabet
    """
    return "".join(secrets.choice(SECRET_ALPHABET) for _ in range(length))


def generate_hex_token(length: int = 48) -> str:
    """Generate a random lowercase hex token.

    Hex is used for gateway and hook tokens so the literal value survives
    shell, JSON and sed without escaping.

    Args:
        length: Number of hex characters (must be even)

    Returns:
        Hex string of the requested length
    """
    return secrets.token_hex(length // 2)


def generate_db_password(length: int = 32) -> str:
    """Generate a database password for a new project."""
    return "".join(secrets.choice(DB_PASSWORD_ALPHABET) for _ in range(length))


class TokenEncryption:
    """Fernet-based encryption for secrets held in the record store.

    Uses symmetric encryption to protect tokens at rest.
    """

    def __init__(self, key: str | bytes) -> None:
        """Initialize token encryption.

        Args:
            key: Fernet-compatible key (32 bytes, URL-safe base64 encoded)
        """
        if isinstance(key, str):
            key = key.encode()
        self.fernet = Fernet(key)

    def encrypt(self, token: str) -> str:
        """Encrypt a token.

        Args:
            token: Plaintext token

        Returns:
            Encrypted token (URL-safe base64)
        """
        encrypted = self.fernet.encrypt(token.encode())
        return encrypted.decode()

    def decrypt(self, encrypted: str) -> str:
        """Decrypt a token.

        Args:
            encrypted: Encrypted token (URL-safe base64)

        Returns:
            Plaintext token
        """
        decrypted = self.fernet.decrypt(encrypted.encode())
        return decrypted.decode()
