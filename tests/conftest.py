"""Shared test fixtures for launchkey_envelope tests."""

import base64
import json
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx
import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives import padding as sym_padding
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from launchkey_envelope.cache import MemoryCache, PublicKeyCache
from launchkey_envelope.client import LaunchKeyClient
from launchkey_envelope.crypt import RSACryptService
from launchkey_envelope.envelope import SecureEnvelope
from launchkey_envelope.transport import HttpxTransport

# Enable launchkey_envelope debug logging during tests
logging.getLogger("launchkey_envelope").setLevel(logging.DEBUG)
logging.getLogger("launchkey_envelope").addHandler(logging.StreamHandler())

TEST_APP_KEY = "1234567890"
TEST_SECRET_KEY = "test-secret-key-0123456789abcdef"
TEST_BASE_URL = "https://api.launchkey.test"
FIXED_NOW = datetime(2026, 10, 17, 12, 30, 45, tzinfo=timezone.utc)

_OAEP = padding.OAEP(mgf=padding.MGF1(algorithm=hashes.SHA1()), algorithm=hashes.SHA1(), label=None)


def private_pem(key: rsa.RSAPrivateKey) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def public_pem(key: rsa.RSAPrivateKey) -> str:
    return (
        key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("ascii")
    )


# === Key Fixtures ===


@pytest.fixture(scope="session")
def client_rsa_key() -> rsa.RSAPrivateKey:
    """Application RSA key pair.

    Session-scoped: RSA generation is slow, one pair serves every test.
    """
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def service_rsa_key() -> rsa.RSAPrivateKey:
    """Service RSA key pair, distinct from the application's."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def client_private_pem(client_rsa_key: rsa.RSAPrivateKey) -> str:
    return private_pem(client_rsa_key)


@pytest.fixture(scope="session")
def service_public_pem(service_rsa_key: rsa.RSAPrivateKey) -> str:
    return public_pem(service_rsa_key)


@pytest.fixture
def crypt(client_private_pem: str) -> RSACryptService:
    return RSACryptService(client_private_pem)


# === Service Simulator ===


@dataclass
class ServiceSimulator:
    """Performs the service's half of the envelope.

    Encrypts for the application public key and decrypts/signs with the
    service private key, exactly as the remote API does.
    """

    service_key: rsa.RSAPrivateKey
    client_public_key: rsa.RSAPublicKey

    @property
    def public_pem(self) -> str:
        return public_pem(self.service_key)

    def encrypt_for_client(self, payload: dict[str, Any] | bytes) -> str:
        """RSA-encrypt a payload for the application, base64 encoded."""
        data = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
        return base64.b64encode(self.client_public_key.encrypt(data, _OAEP)).decode()

    def decrypt_from_client(self, ciphertext: bytes) -> dict[str, Any]:
        """Open the secret key envelope sent by the application."""
        return json.loads(self.service_key.decrypt(ciphertext, _OAEP))

    def sign(self, data: bytes) -> str:
        signature = self.service_key.sign(data, padding.PKCS1v15(), hashes.SHA256())
        return base64.b64encode(signature).decode()

    def verify_client_signature(self, signature: str, data: bytes) -> None:
        """Raise InvalidSignature unless the application signed ``data``."""
        self.client_public_key.verify(base64.b64decode(signature), data, padding.PKCS1v15(), hashes.SHA256())

    def white_label_payload(self, user_data: dict[str, Any] | bytes) -> dict[str, str]:
        """Wrap user data the way white-label user creation answers."""
        key = secrets.token_bytes(32)
        iv = secrets.token_bytes(16)
        plaintext = user_data if isinstance(user_data, bytes) else json.dumps(user_data).encode()
        padder = sym_padding.PKCS7(128).padder()
        padded = padder.update(plaintext) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return {
            "cipher": self.encrypt_for_client(key + iv),
            "data": base64.b64encode(ciphertext).decode(),
        }


@pytest.fixture
def service(service_rsa_key: rsa.RSAPrivateKey, client_rsa_key: rsa.RSAPrivateKey) -> ServiceSimulator:
    return ServiceSimulator(service_key=service_rsa_key, client_public_key=client_rsa_key.public_key())


# === Cache Fixtures ===


@dataclass
class FaultyCache:
    """Cache whose get and/or set always raise."""

    fail_get: bool = False
    fail_set: bool = False
    stored: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        if self.fail_get:
            raise ConnectionError("cache unavailable")
        return self.stored.get(key)

    def set(self, key: str, value: str, ttl: int) -> None:
        if self.fail_set:
            raise ConnectionError("cache unavailable")
        self.stored[key] = value


@pytest.fixture
def key_cache(service_public_pem: str) -> PublicKeyCache:
    """PublicKeyCache that 'fetches' the service key without any network."""
    return PublicKeyCache(MemoryCache(), lambda: service_public_pem)


@pytest.fixture
def envelope(crypt: RSACryptService, key_cache: PublicKeyCache) -> SecureEnvelope:
    return SecureEnvelope(TEST_APP_KEY, TEST_SECRET_KEY, crypt, key_cache, clock=lambda: FIXED_NOW)


# === HTTP Fixtures ===

Handler = Callable[[httpx.Request], httpx.Response]


def ping_payload(public_key: str) -> dict[str, str]:
    return {
        "launchkey_time": "2026-10-17 12:30:45",
        "key": public_key,
        "date_stamp": "2026-10-01 00:00:00",
    }


def form_fields(request: httpx.Request) -> dict[str, str]:
    """Decode the urlencoded body of a captured request."""
    return dict(httpx.QueryParams(request.content.decode()))


@pytest.fixture
def client_factory(client_private_pem: str) -> Callable[[Handler], LaunchKeyClient]:
    """Factory for clients whose HTTP traffic goes to a handler function.

    Usage:
        def test_something(client_factory):
            client = client_factory(lambda request: httpx.Response(200, json={...}))
    """

    def _make_client(handler: Handler, **kwargs: Any) -> LaunchKeyClient:
        http = httpx.Client(transport=httpx.MockTransport(handler), base_url=TEST_BASE_URL)
        return LaunchKeyClient.from_private_key(
            TEST_APP_KEY,
            TEST_SECRET_KEY,
            client_private_pem,
            transport=HttpxTransport(TEST_BASE_URL, client=http),
            **kwargs,
        )

    return _make_client
