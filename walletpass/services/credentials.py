"""
Signing credentials loading.

All certificate / key file I/O happens here, so the signer itself stays a
pure function of (certificate, key, bytes). Supports PKCS#12 bundles
(preferred) and PEM or DER certificate + PEM private key.
"""
import logging
import os
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple, Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization.pkcs12 import load_key_and_certificates

from walletpass.core.config import Settings
from walletpass.core.constants import APPLE_WWDR_CERT_PEM
from walletpass.core.errors import PassConfigError, PassCryptoError, PassIOError

logger = logging.getLogger(__name__)

PrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]

_PEM_BLOCK_RE = re.compile(
    rb"-----BEGIN ([A-Z0-9 ]+)-----\r?\n.*?-----END \1-----",
    re.DOTALL,
)


def _as_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def _password_bytes(password: Optional[Union[str, bytes]]) -> Optional[bytes]:
    if not password:
        return None
    return _as_bytes(password)


def _pem_blocks(data: bytes):
    for match in _PEM_BLOCK_RE.finditer(data):
        yield match.group(1).decode("ascii"), match.group(0)


def load_certificate(data: Union[str, bytes]) -> x509.Certificate:
    """
    Parse a certificate from PEM (first CERTIFICATE block) or DER bytes.

    Raises:
        PassCryptoError: If no certificate can be parsed
    """
    data = _as_bytes(data)
    try:
        for block_type, block in _pem_blocks(data):
            if block_type in ("CERTIFICATE", "X509 CERTIFICATE", "TRUSTED CERTIFICATE"):
                return x509.load_pem_x509_certificate(block)
        # Try DER format
        return x509.load_der_x509_certificate(data)
    except ValueError as e:
        raise PassCryptoError(f"Failed to decode provided certificate: {e}") from e


def load_private_key(data: Union[str, bytes], password: Optional[Union[str, bytes]] = None) -> PrivateKey:
    """
    Decrypt a PEM private key (PKCS#1, PKCS#8 or SEC1).

    Raises:
        PassCryptoError: On a wrong or missing passphrase, malformed PEM or an
            unsupported key algorithm
    """
    data = _as_bytes(data)
    key_block = next((block for block_type, block in _pem_blocks(data) if "PRIVATE KEY" in block_type), data)
    try:
        key = serialization.load_pem_private_key(key_block, password=_password_bytes(password))
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise PassCryptoError(f"Failed to decode provided private key. Invalid password? ({e})") from e

    if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise PassCryptoError(f"Unsupported private key type {type(key).__name__}, expected RSA or EC")
    return key


def load_certificate_and_key(
    data: Union[str, bytes],
    password: Optional[Union[str, bytes]] = None,
) -> Tuple[x509.Certificate, Optional[PrivateKey]]:
    """
    Parse a PEM that holds a certificate and, optionally, its private key
    (the layout produced by exporting a P12 with `openssl pkcs12 -nodes`).
    """
    data = _as_bytes(data)
    certificate = load_certificate(data)
    has_key = any("PRIVATE KEY" in block_type for block_type, _ in _pem_blocks(data))
    key = load_private_key(data, password) if has_key else None
    return certificate, key


def load_p12(data: bytes, password: Optional[Union[str, bytes]] = None) -> Tuple[x509.Certificate, PrivateKey]:
    try:
        private_key, certificate, _additional = load_key_and_certificates(data, _password_bytes(password))
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise PassCryptoError(f"Failed to load P12 certificate: {e}") from e
    if certificate is None or private_key is None:
        raise PassCryptoError("P12 bundle must contain both the signer certificate and its private key")
    if not isinstance(private_key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise PassCryptoError(f"Unsupported private key type {type(private_key).__name__}, expected RSA or EC")
    return certificate, private_key


@lru_cache(maxsize=None)
def _parse_wwdr(pem: bytes) -> x509.Certificate:
    return load_certificate(pem)


def get_wwdr_certificate(pem: Optional[Union[str, bytes]] = None) -> x509.Certificate:
    """
    Return the Apple WWDR intermediate certificate.

    Parsed once per distinct PEM and shared afterwards.
    """
    return _parse_wwdr(_as_bytes(pem) if pem else APPLE_WWDR_CERT_PEM)


def _read(path: str, what: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise PassIOError(f"{what} file not found or unreadable: {path}", path) from e


@dataclass(frozen=True)
class SigningCredentials:
    """Signer certificate, its private key and the intermediate to embed."""
    certificate: x509.Certificate
    private_key: PrivateKey = field(repr=False)
    wwdr_certificate: x509.Certificate = field(default_factory=get_wwdr_certificate)

    @classmethod
    def from_pem(
        cls,
        certificate_pem: Union[str, bytes],
        key_pem: Optional[Union[str, bytes]] = None,
        password: Optional[Union[str, bytes]] = None,
        wwdr_pem: Optional[Union[str, bytes]] = None,
    ) -> "SigningCredentials":
        """
        Build credentials from PEM data. If key_pem is omitted the key is
        looked up in certificate_pem.
        """
        certificate, key = load_certificate_and_key(certificate_pem, password)
        if key_pem is not None:
            key = load_private_key(key_pem, password)
        if key is None:
            raise PassCryptoError("No private key found for the signer certificate")
        return cls(certificate=certificate, private_key=key, wwdr_certificate=get_wwdr_certificate(wwdr_pem))

    @classmethod
    def from_settings(cls, config: Settings) -> "SigningCredentials":
        """Load credentials from configured files, trying P12 first and PEM second."""
        wwdr_pem = config.APPLE_WWDR_CERT_PEM or None
        if not wwdr_pem and config.APPLE_WALLET_WWDR_CERT_PATH:
            wwdr_pem = _read(config.APPLE_WALLET_WWDR_CERT_PATH, "WWDR certificate")
        wwdr = get_wwdr_certificate(wwdr_pem)

        if config.p12_configured:
            certificate, key = load_p12(
                _read(config.APPLE_WALLET_CERT_P12_PATH, "P12 certificate"),
                config.APPLE_WALLET_CERT_P12_PASSWORD,
            )
            logger.debug("Loaded P12 certificate for pass signing")
            return cls(certificate=certificate, private_key=key, wwdr_certificate=wwdr)

        if config.pem_configured:
            certificate = load_certificate(_read(config.APPLE_WALLET_CERT_PATH, "Signer certificate"))
            key = load_private_key(
                _read(config.APPLE_WALLET_KEY_PATH, "Private key"),
                config.APPLE_WALLET_KEY_PASSWORD,
            )
            logger.debug("Loaded PEM certificate/key for pass signing")
            return cls(certificate=certificate, private_key=key, wwdr_certificate=wwdr)

        raise PassConfigError("Pass signing certificates not configured")

    @classmethod
    def from_template_folder(
        cls,
        folder: Union[str, os.PathLike],
        pass_type_identifier: str,
        password: Optional[Union[str, bytes]] = None,
    ) -> Optional["SigningCredentials"]:
        """
        Load `<passTypeIdentifier without "pass." prefix>.pem` from a template
        folder. Returns None if the file does not exist.
        """
        key_name = re.sub(r"^pass\.", "", pass_type_identifier) + ".pem"
        path = Path(folder) / key_name
        if not path.is_file():
            return None
        return cls.from_pem(_read(str(path), "Signer PEM"), password=password)
