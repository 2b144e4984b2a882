"""
Cryptographic primitives consumed by the envelope.

CryptService is the seam: the envelope decides which bytes are encrypted,
decrypted and signed, and a CryptService does the math. RSACryptService is
the default implementation on top of the ``cryptography`` package.

Algorithms (must match the service):
- RSA encryption: OAEP with MGF1(SHA-1) and SHA-1
- Signatures: RSASSA-PKCS1-v1_5 with SHA-256, base64 encoded
- Symmetric: AES-CBC with PKCS#7 padding

Inbound ciphertext arrives base64 encoded, so ``decrypt_rsa`` and
``decrypt_aes`` take the base64 text exactly as delivered.
"""

from __future__ import annotations

from typing import Protocol

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives import padding as sym_padding
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from launchkey_envelope.codec import b64_decode, b64_encode
from launchkey_envelope.exceptions import InvalidResponseError

__all__ = [
    "CryptService",
    "RSACryptService",
    "load_public_key",
]


class CryptService(Protocol):
    """RSA/AES operations needed by the envelope and the callback router."""

    def encrypt_rsa(self, data: bytes, public_key: str) -> bytes:
        """Encrypt ``data`` for the holder of the PEM ``public_key``."""
        ...

    def decrypt_rsa(self, data: str | bytes) -> bytes:
        """Decrypt base64 ciphertext with this client's private key."""
        ...

    def decrypt_aes(self, data: str | bytes, key: bytes, iv: bytes) -> bytes:
        """Decrypt base64 AES-CBC ciphertext and strip its padding."""
        ...

    def sign(self, data: bytes) -> str:
        """Sign ``data`` with this client's private key, base64 encoded."""
        ...

    def verify_signature(self, signature: str, data: bytes, public_key: str) -> bool:
        """Check a base64 ``signature`` over ``data`` against a PEM public key."""
        ...


def _oaep() -> padding.OAEP:
    return padding.OAEP(mgf=padding.MGF1(algorithm=hashes.SHA1()), algorithm=hashes.SHA1(), label=None)  # noqa: S303


def load_public_key(public_key: str) -> rsa.RSAPublicKey:
    """
    Load the service public key from PEM text.

    Raises:
        InvalidResponseError: If the value is not a PEM encoded RSA public key
    """
    try:
        key = serialization.load_pem_public_key(public_key.encode("ascii"))
    except (AttributeError, TypeError, ValueError) as e:
        raise InvalidResponseError(f"Invalid service public key: {type(e).__name__}") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise InvalidResponseError(f"Invalid service public key: expected RSA, got {type(key).__name__}")
    return key


class RSACryptService:
    """
    CryptService backed by an in-memory RSA private key.

    Example:
        with open("private.key", "rb") as f:
            crypt = RSACryptService(f.read())
    """

    def __init__(self, private_key: str | bytes, password: bytes | None = None) -> None:
        """
        Args:
            private_key: PEM encoded RSA private key issued for the application
            password: Passphrase if the PEM is encrypted

        Raises:
            TypeError: If the key is not an RSA key
            ValueError: If the PEM cannot be parsed
        """
        if isinstance(private_key, str):
            private_key = private_key.encode("ascii")
        key = serialization.load_pem_private_key(private_key, password=password)
        if not isinstance(key, rsa.RSAPrivateKey):
            raise TypeError(f"Expected an RSA private key, got {type(key).__name__}")
        self._private_key = key

    @property
    def public_key_pem(self) -> str:
        """PEM of the public half, as registered with the service for this application."""
        return (
            self._private_key.public_key()
            .public_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )
            .decode("ascii")
        )

    def encrypt_rsa(self, data: bytes, public_key: str) -> bytes:
        return load_public_key(public_key).encrypt(data, _oaep())

    def decrypt_rsa(self, data: str | bytes) -> bytes:
        return self._private_key.decrypt(b64_decode(data), _oaep())

    def decrypt_aes(self, data: str | bytes, key: bytes, iv: bytes) -> bytes:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(b64_decode(data)) + decryptor.finalize()
        unpadder = sym_padding.PKCS7(algorithms.AES.block_size).unpadder()
        return unpadder.update(padded) + unpadder.finalize()

    def sign(self, data: bytes) -> str:
        signature = self._private_key.sign(data, padding.PKCS1v15(), hashes.SHA256())
        return b64_encode(signature)

    def verify_signature(self, signature: str, data: bytes, public_key: str) -> bool:
        try:
            load_public_key(public_key).verify(b64_decode(signature), data, padding.PKCS1v15(), hashes.SHA256())
        except (InvalidResponseError, InvalidSignature, ValueError):
            return False
        return True
