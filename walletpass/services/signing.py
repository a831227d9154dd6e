"""
Manifest signing.

Produces the `signature` entry of a pass bundle: a DER-encoded PKCS#7 / CMS
ContentInfo wrapping a *detached* SignedData over the manifest.json bytes.

- Digest algorithm is SHA-1 (required by the Wallet verifier)
- Signer certificate and the WWDR intermediate are embedded
- Signed attributes: content-type (data), message-digest, signing-time

cryptography's PKCS7SignatureBuilder refuses SHA-1, so the ASN.1 structure is
assembled with pyasn1-modules (RFC 5652) and only the signature over the
signed attributes is computed by cryptography.
"""
import hashlib
import logging
from datetime import datetime, timezone
from typing import Optional

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from pyasn1.codec.der import decoder as der_decoder
from pyasn1.codec.der import encoder as der_encoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import namedtype, tag, univ, useful
from pyasn1_modules import rfc5280, rfc5652

from walletpass.core.errors import PassCryptoError
from walletpass.services.credentials import PrivateKey, SigningCredentials, get_wwdr_certificate

logger = logging.getLogger(__name__)

ID_DATA = univ.ObjectIdentifier("1.2.840.113549.1.7.1")
ID_SIGNED_DATA = univ.ObjectIdentifier("1.2.840.113549.1.7.2")
ID_CONTENT_TYPE = univ.ObjectIdentifier("1.2.840.113549.1.9.3")
ID_MESSAGE_DIGEST = univ.ObjectIdentifier("1.2.840.113549.1.9.4")
ID_SIGNING_TIME = univ.ObjectIdentifier("1.2.840.113549.1.9.5")
ID_SHA1 = univ.ObjectIdentifier("1.3.14.3.2.26")
ID_RSA_ENCRYPTION = univ.ObjectIdentifier("1.2.840.113549.1.1.1")
ID_ECDSA_WITH_SHA1 = univ.ObjectIdentifier("1.2.840.10045.4.1")

_DER_NULL = der_encoder.encode(univ.Null(""))


class CertificateSet(univ.SetOf):
    """CertificateSet holding already DER-encoded certificates verbatim."""
    componentType = univ.Any()


class SignedData(univ.Sequence):
    """
    RFC 5652 SignedData without CRLs, with certificates kept as raw DER so
    they are embedded byte-for-byte as issued.
    """
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("version", rfc5652.CMSVersion()),
        namedtype.NamedType("digestAlgorithms", rfc5652.DigestAlgorithmIdentifiers()),
        namedtype.NamedType("encapContentInfo", rfc5652.EncapsulatedContentInfo()),
        namedtype.OptionalNamedType(
            "certificates",
            CertificateSet().subtype(implicitTag=tag.Tag(tag.tagClassContext, tag.tagFormatConstructed, 0)),
        ),
        namedtype.NamedType("signerInfos", rfc5652.SignerInfos()),
    )


def _algorithm(spec, oid: univ.ObjectIdentifier, null_parameters: bool = True):
    algorithm = spec.clone()
    algorithm["algorithm"] = oid
    if null_parameters:
        algorithm["parameters"] = _DER_NULL
    return algorithm


def _attribute(oid: univ.ObjectIdentifier, value) -> rfc5652.Attribute:
    attribute = rfc5652.Attribute()
    attribute["attrType"] = oid
    attribute["attrValues"].append(univ.Any(der_encoder.encode(value)))
    return attribute


def _signing_time_value(when: datetime):
    when = when.astimezone(timezone.utc)
    # UTCTime covers 1950-2049, GeneralizedTime everything else
    if 1950 <= when.year < 2050:
        return useful.UTCTime(when.strftime("%y%m%d%H%M%SZ"))
    return useful.GeneralizedTime(when.strftime("%Y%m%d%H%M%SZ"))


def _issuer_and_serial(certificate: x509.Certificate) -> rfc5652.IssuerAndSerialNumber:
    issuer, _ = der_decoder.decode(certificate.issuer.public_bytes(), asn1Spec=rfc5280.Name())
    issuer_and_serial = rfc5652.IssuerAndSerialNumber()
    issuer_and_serial["issuer"] = issuer
    issuer_and_serial["serialNumber"] = certificate.serial_number
    return issuer_and_serial


def _spki(public_key) -> bytes:
    return public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def _check_key_matches(certificate: x509.Certificate, private_key: PrivateKey) -> None:
    if not isinstance(private_key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise PassCryptoError(f"Unsupported private key type {type(private_key).__name__}, expected RSA or EC")
    try:
        matches = _spki(certificate.public_key()) == _spki(private_key.public_key())
    except (ValueError, UnsupportedAlgorithm) as e:
        raise PassCryptoError(f"Cannot read signer certificate public key: {e}") from e
    if not matches:
        raise PassCryptoError("Private key does not match the signer certificate")


def _sign_attributes(private_key: PrivateKey, data: bytes):
    """Returns (signatureAlgorithm OID, NULL parameters?, signature bytes)."""
    if isinstance(private_key, rsa.RSAPrivateKey):
        return ID_RSA_ENCRYPTION, True, private_key.sign(data, padding.PKCS1v15(), hashes.SHA1())
    return ID_ECDSA_WITH_SHA1, False, private_key.sign(data, ec.ECDSA(hashes.SHA1()))


def sign_manifest(
    certificate: x509.Certificate,
    private_key: PrivateKey,
    manifest: bytes,
    *,
    wwdr_certificate: Optional[x509.Certificate] = None,
    signing_time: Optional[datetime] = None,
) -> bytes:
    """
    Sign manifest bytes and return the detached signature (raw DER).

    Args:
        certificate: Pass Type ID certificate of the signer
        private_key: Private key of that certificate (RSA or EC)
        manifest: Exact manifest.json bytes as written to the bundle
        wwdr_certificate: Intermediate to embed (bundled WWDR when omitted)
        signing_time: Value of the signing-time attribute (now when omitted)

    Raises:
        PassCryptoError: If the key does not match the certificate, the key
            type is unsupported or signing fails
    """
    _check_key_matches(certificate, private_key)
    if wwdr_certificate is None:
        wwdr_certificate = get_wwdr_certificate()
    if signing_time is None:
        signing_time = datetime.now(timezone.utc)

    try:
        signer_info = rfc5652.SignerInfo()
        signer_info["version"] = 1
        signer_info["sid"]["issuerAndSerialNumber"] = _issuer_and_serial(certificate)
        signer_info["digestAlgorithm"] = _algorithm(rfc5652.DigestAlgorithmIdentifier(), ID_SHA1)

        signed_attrs = signer_info["signedAttrs"]
        signed_attrs.append(_attribute(ID_CONTENT_TYPE, ID_DATA))
        signed_attrs.append(_attribute(ID_MESSAGE_DIGEST, univ.OctetString(hashlib.sha1(manifest).digest())))
        signed_attrs.append(_attribute(ID_SIGNING_TIME, _signing_time_value(signing_time)))

        # The signature covers the attributes encoded as a plain SET OF,
        # not with the [0] IMPLICIT tag they carry inside SignerInfo
        encoded_attrs = der_encoder.encode(signed_attrs)
        to_sign = b"\x31" + encoded_attrs[1:]

        signature_oid, null_parameters, signature = _sign_attributes(private_key, to_sign)
        signer_info["signatureAlgorithm"] = _algorithm(
            rfc5652.SignatureAlgorithmIdentifier(), signature_oid, null_parameters
        )
        signer_info["signature"] = signature

        signed_data = SignedData()
        signed_data["version"] = 1
        signed_data["digestAlgorithms"].append(_algorithm(rfc5652.DigestAlgorithmIdentifier(), ID_SHA1))
        # Detached: eContent is left out, only its type is declared
        signed_data["encapContentInfo"]["eContentType"] = ID_DATA
        for cert in (certificate, wwdr_certificate):
            signed_data["certificates"].append(univ.Any(cert.public_bytes(serialization.Encoding.DER)))
        signed_data["signerInfos"].append(signer_info)

        content_info = rfc5652.ContentInfo()
        content_info["contentType"] = ID_SIGNED_DATA
        content_info["content"] = der_encoder.encode(signed_data)
        signature_der = der_encoder.encode(content_info)
    except (PyAsn1Error, ValueError, UnsupportedAlgorithm) as e:
        logger.error(f"Failed to sign pass manifest: {e}", exc_info=True)
        raise PassCryptoError(f"Failed to sign pass manifest: {e}") from e

    logger.debug("Created detached CMS signature (%d bytes) over %d manifest bytes", len(signature_der), len(manifest))
    return signature_der


def sign_with_credentials(credentials: SigningCredentials, manifest: bytes) -> bytes:
    """In-process signer used by the bundle assembler."""
    return sign_manifest(
        credentials.certificate,
        credentials.private_key,
        manifest,
        wwdr_certificate=credentials.wwdr_certificate,
    )
