"""
Manifest signing through the `openssl cms` command.

Alternative to the in-process signer for hosts where the OpenSSL CLI is the
preferred crypto provider. Produces the same detached SHA-1 CMS structure:

    openssl cms -sign -signer <cert+key> -certfile <wwdr> -binary -md sha1 -outform DER

Key material is written to private temporary files that are removed after
the command finishes.
"""
import logging
import os
import subprocess
import tempfile
from typing import List, Optional

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from walletpass.core.errors import PassCryptoError
from walletpass.services.credentials import PrivateKey, SigningCredentials, get_wwdr_certificate

logger = logging.getLogger(__name__)

OPENSSL_TIMEOUT_SECONDS = 10


def _write_temp(data: bytes, suffix: str, created: List[str]) -> str:
    with tempfile.NamedTemporaryFile(delete=False, mode="wb", suffix=suffix) as tmp:
        tmp.write(data)
    created.append(tmp.name)
    return tmp.name


def sign_manifest_openssl(
    certificate: x509.Certificate,
    private_key: PrivateKey,
    manifest: bytes,
    *,
    wwdr_certificate: Optional[x509.Certificate] = None,
    openssl_bin: str = "openssl",
) -> bytes:
    """
    Sign manifest bytes with `openssl cms` and return the DER signature.

    Raises:
        PassCryptoError: If openssl is missing, times out or exits non-zero
    """
    if wwdr_certificate is None:
        wwdr_certificate = get_wwdr_certificate()

    created: List[str] = []
    try:
        manifest_path = _write_temp(manifest, ".json", created)
        # Combined signer file: certificate followed by its unencrypted key
        signer_path = _write_temp(
            certificate.public_bytes(serialization.Encoding.PEM)
            + private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            ),
            ".pem",
            created,
        )
        wwdr_path = _write_temp(wwdr_certificate.public_bytes(serialization.Encoding.PEM), ".pem", created)
        sig_path = _write_temp(b"", ".der", created)

        # -binary without -nodetach gives a detached signature
        command = [
            openssl_bin, "cms",
            "-sign",
            "-signer", signer_path,
            "-certfile", wwdr_path,
            "-in", manifest_path,
            "-out", sig_path,
            "-outform", "DER",
            "-binary",
            "-md", "sha1",
        ]
        try:
            result = subprocess.run(command, capture_output=True, text=True, timeout=OPENSSL_TIMEOUT_SECONDS)
        except FileNotFoundError as e:
            raise PassCryptoError(f"openssl binary not found: {openssl_bin}") from e
        except subprocess.TimeoutExpired as e:
            raise PassCryptoError("OpenSSL signing timed out") from e

        if result.returncode != 0:
            logger.error(f"OpenSSL signing failed: {result.stderr.strip()}")
            raise PassCryptoError(f"OpenSSL signing failed: {result.stderr.strip()}")

        with open(sig_path, "rb") as f:
            signature_der = f.read()
    finally:
        for tmp_path in created:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass

    logger.debug("Created detached CMS signature using OpenSSL with SHA1")
    return signature_der


def make_openssl_signer(openssl_bin: str = "openssl"):
    """Return a signer callable for the bundle assembler that shells out to openssl."""

    def sign(credentials: SigningCredentials, manifest: bytes) -> bytes:
        return sign_manifest_openssl(
            credentials.certificate,
            credentials.private_key,
            manifest,
            wwdr_certificate=credentials.wwdr_certificate,
            openssl_bin=openssl_bin,
        )

    return sign
