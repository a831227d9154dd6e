"""
Bundle inspection and verification.

Checks a finished .pkpass the way Wallet does before trusting it:
- pass.json, manifest.json and signature are present
- manifest.json lists exactly the other archive entries with matching SHA-1
- the signature is a CMS SignedData with the signer and WWDR certificates
  and a message-digest equal to SHA-1(manifest.json)

verify_signature_openssl() additionally runs `openssl cms -verify` over the
signature and manifest bytes.
"""
import hashlib
import json
import logging
import os
import subprocess
import tempfile
import zipfile
from dataclasses import dataclass, field
from io import BytesIO
from typing import Dict, List, Optional, Tuple

from cryptography import x509
from pyasn1.codec.der import decoder as der_decoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import univ
from pyasn1_modules import rfc5652

from walletpass.core.constants import MANIFEST_JSON, PASS_JSON, SIGNATURE
from walletpass.core.errors import PassArchiveError
from walletpass.services.signing import ID_MESSAGE_DIGEST, ID_SHA1, ID_SIGNED_DATA, SignedData

logger = logging.getLogger(__name__)

REQUIRED_FILES = (PASS_JSON, MANIFEST_JSON, SIGNATURE)


@dataclass
class SignatureInfo:
    """What is inside a detached pass signature."""
    certificates: List[x509.Certificate] = field(default_factory=list)
    digest_algorithms: List[str] = field(default_factory=list)
    message_digest: Optional[bytes] = None
    detached: bool = True

    @property
    def subjects(self) -> List[str]:
        return [cert.subject.rfc4514_string() for cert in self.certificates]


@dataclass
class BundleReport:
    files: Dict[str, int] = field(default_factory=dict)
    manifest: Dict[str, str] = field(default_factory=dict)
    signature: Optional[SignatureInfo] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def parse_signature(signature: bytes) -> SignatureInfo:
    """
    Decode a DER CMS ContentInfo(SignedData).

    Raises:
        ValueError: If the bytes are not a SignedData structure
    """
    try:
        content_info, _ = der_decoder.decode(signature, asn1Spec=rfc5652.ContentInfo())
        if content_info["contentType"] != ID_SIGNED_DATA:
            raise ValueError(f"Unexpected CMS content type {content_info['contentType']}")
        signed_data, _ = der_decoder.decode(content_info["content"], asn1Spec=SignedData())
    except PyAsn1Error as e:
        raise ValueError(f"Signature is not a DER encoded CMS SignedData: {e}") from e

    info = SignatureInfo()
    info.detached = not signed_data["encapContentInfo"]["eContent"].isValue
    info.digest_algorithms = [str(alg["algorithm"]) for alg in signed_data["digestAlgorithms"]]
    if signed_data["certificates"].isValue:
        info.certificates = [
            x509.load_der_x509_certificate(bytes(cert)) for cert in signed_data["certificates"]
        ]

    for signer_info in signed_data["signerInfos"]:
        for attribute in signer_info["signedAttrs"]:
            if attribute["attrType"] == ID_MESSAGE_DIGEST:
                digest, _ = der_decoder.decode(bytes(attribute["attrValues"][0]), asn1Spec=univ.OctetString())
                info.message_digest = bytes(digest)
    return info


def inspect_bundle(bundle: bytes) -> BundleReport:
    """
    Inspect a .pkpass archive. Problems are collected in report.errors.

    Raises:
        PassArchiveError: If the bytes are not a ZIP archive
    """
    report = BundleReport()
    try:
        zf = zipfile.ZipFile(BytesIO(bundle))
    except zipfile.BadZipFile as e:
        raise PassArchiveError(f"Not a pass bundle: {e}") from e

    with zf:
        report.files = {info.filename: info.file_size for info in zf.infolist()}

        missing = [name for name in REQUIRED_FILES if name not in report.files]
        if missing:
            report.errors.append(f"Missing required files: {', '.join(missing)}")
            return report

        manifest_bytes = zf.read(MANIFEST_JSON)
        try:
            report.manifest = json.loads(manifest_bytes.decode("utf-8"))
        except ValueError as e:
            report.errors.append(f"manifest.json is not valid JSON: {e}")
            return report

        manifest_files = set(report.manifest)
        zip_files = set(report.files) - {MANIFEST_JSON, SIGNATURE}
        if manifest_files != zip_files:
            report.errors.append(
                f"Manifest mismatch: in manifest only {sorted(manifest_files - zip_files)}, "
                f"in archive only {sorted(zip_files - manifest_files)}"
            )
        for name in sorted(manifest_files & zip_files):
            if hashlib.sha1(zf.read(name)).hexdigest() != report.manifest[name]:
                report.errors.append(f"Hash mismatch for {name}")

        try:
            report.signature = parse_signature(zf.read(SIGNATURE))
        except ValueError as e:
            report.errors.append(str(e))
            return report

    signature = report.signature
    if not signature.detached:
        report.errors.append("Signature embeds its content, expected a detached signature")
    if str(ID_SHA1) not in signature.digest_algorithms:
        report.errors.append(f"Signature digest is not SHA-1: {signature.digest_algorithms}")
    if len(signature.certificates) < 2:
        report.errors.append(f"Expected signer and WWDR certificates, found {len(signature.certificates)}")
    if signature.message_digest != hashlib.sha1(manifest_bytes).digest():
        report.errors.append("Signed message-digest does not match manifest.json")
    return report


def verify_signature_openssl(
    signature: bytes,
    manifest: bytes,
    openssl_bin: str = "openssl",
) -> Tuple[bool, str]:
    """
    Verify a detached signature against manifest bytes with `openssl cms
    -verify -noverify` (signature only, the chain is not checked).

    Returns:
        (is_valid, openssl output)
    """
    created = []
    try:
        for data, suffix in ((signature, ".der"), (manifest, ".json")):
            with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
                tmp.write(data)
            created.append(tmp.name)
        sig_path, manifest_path = created

        result = subprocess.run(
            [
                openssl_bin, "cms", "-verify",
                "-noverify",
                "-binary",
                "-inform", "DER",
                "-in", sig_path,
                "-content", manifest_path,
                "-out", os.devnull,
            ],
            capture_output=True,
            text=True,
            timeout=10,
        )
    finally:
        for tmp_path in created:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass

    output = (result.stdout + result.stderr).strip()
    if result.returncode != 0:
        logger.warning(f"OpenSSL signature verification failed: {output}")
    return result.returncode == 0, output


def verify_bundle_openssl(bundle: bytes, openssl_bin: str = "openssl") -> Tuple[bool, str]:
    """Run verify_signature_openssl() on the signature and manifest of an archive."""
    with zipfile.ZipFile(BytesIO(bundle)) as zf:
        return verify_signature_openssl(zf.read(SIGNATURE), zf.read(MANIFEST_JSON), openssl_bin)
