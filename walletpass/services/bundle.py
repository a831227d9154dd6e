"""
Pass bundle assembler.

Builds a complete .pkpass archive from a descriptor, an image set, a set of
localizations and signing credentials:

1. validate descriptor and images (no I/O before this)
2. serialize pass.json
3. hash every image variant            \\ concurrent tasks,
4. hash every {lang}.lproj/pass.strings / joined before 5
5. build manifest.json
6. sign the manifest bytes
7. write the ZIP archive (manifest.json and signature stored uncompressed)

Nothing is emitted unless every step succeeds; the first error propagates.
"""
import asyncio
import json
import logging
import os
import time
from typing import Any, BinaryIO, Callable, Mapping, Optional, Union

from pydantic import ValidationError

from walletpass.core.config import Settings, settings
from walletpass.core.constants import MANIFEST_JSON, PASS_JSON, PASS_MIME_TYPE, SIGNATURE
from walletpass.core.errors import PassConfigError, PassValidationError
from walletpass.schemas.pass_descriptor import PassDescriptor
from walletpass.services.archive import write_archive
from walletpass.services.credentials import SigningCredentials
from walletpass.services.hashing import produce_async
from walletpass.services.images import PassImages
from walletpass.services.localizations import Localizations
from walletpass.services.manifest import serialize_manifest
from walletpass.services.openssl_signer import make_openssl_signer
from walletpass.services.signing import sign_with_credentials
from walletpass.services.validation import validate_descriptor, validate_images

logger = logging.getLogger(__name__)

__all__ = ["PASS_MIME_TYPE", "assemble", "assemble_async", "get_signer", "write_bundle"]

Signer = Callable[[SigningCredentials, bytes], bytes]
DescriptorInput = Union[PassDescriptor, Mapping[str, Any]]


def get_signer(config: Settings = settings) -> Signer:
    """Return the signer selected by WALLETPASS_SIGNING_BACKEND."""
    backend = config.WALLETPASS_SIGNING_BACKEND
    if backend == "inprocess":
        return sign_with_credentials
    if backend == "openssl":
        return make_openssl_signer(config.WALLETPASS_OPENSSL_BIN)
    raise PassConfigError(f"Unknown signing backend '{backend}', expected 'inprocess' or 'openssl'")


def _as_descriptor(descriptor: DescriptorInput) -> PassDescriptor:
    if isinstance(descriptor, PassDescriptor):
        return descriptor
    try:
        return PassDescriptor.model_validate(dict(descriptor))
    except ValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise PassValidationError("; ".join(errors), errors) from e


def serialize_descriptor(descriptor: PassDescriptor) -> bytes:
    return json.dumps(descriptor.to_pass_json(), indent=2).encode("utf-8")


async def assemble_async(
    descriptor: DescriptorInput,
    images: PassImages,
    localizations: Optional[Localizations],
    credentials: SigningCredentials,
    *,
    signer: Optional[Signer] = None,
    compress: Optional[bool] = None,
) -> bytes:
    """
    Build a signed pass bundle and return the archive bytes.

    Args:
        descriptor: pass.json content (model or plain mapping)
        images: Image set; a snapshot is taken at the start of the call
        localizations: Translations, or None
        credentials: Signer certificate and key
        signer: Signing function; defaults to the configured backend
        compress: Deflate pass.json / images / strings; defaults to
            WALLETPASS_COMPRESS_ENTRIES

    Raises:
        PassValidationError: Missing required field or image
        PassIOError: An image file cannot be read
        PassCryptoError: Signing failed
        PassArchiveError: The archive writer failed
    """
    started = time.monotonic()
    descriptor = _as_descriptor(descriptor)
    validate_descriptor(descriptor)
    validate_images(images)
    logger.debug("Validated pass %s", descriptor.serialNumber)

    variants = images.snapshot()
    strings = (localizations or Localizations()).to_entries()
    pass_json = serialize_descriptor(descriptor)

    tasks = [produce_async(PASS_JSON, pass_json)]
    tasks.extend(produce_async(variant.archive_path, variant.source) for variant in variants)
    tasks.extend(produce_async(path, data) for path, data in strings)
    entries = await asyncio.gather(*tasks)
    logger.debug("Hashed %d bundle entries", len(entries))

    manifest = serialize_manifest(entries)
    signature = await asyncio.to_thread(signer or get_signer(), credentials, manifest)
    logger.debug("Signed manifest (%d bytes)", len(manifest))

    if compress is None:
        compress = settings.WALLETPASS_COMPRESS_ENTRIES
    archive_entries = [(entry.path, entry.data, compress) for entry in entries]
    archive_entries.append((MANIFEST_JSON, manifest, False))
    archive_entries.append((SIGNATURE, signature, False))
    bundle = write_archive(archive_entries)

    logger.info(
        f"Created pass bundle {descriptor.serialNumber} "
        f"({len(archive_entries)} entries, size={len(bundle)} bytes, {time.monotonic() - started:.3f}s)"
    )
    return bundle


def assemble(
    descriptor: DescriptorInput,
    images: PassImages,
    localizations: Optional[Localizations],
    credentials: SigningCredentials,
    *,
    signer: Optional[Signer] = None,
    compress: Optional[bool] = None,
) -> bytes:
    """Blocking wrapper around assemble_async(); must not be called from a running event loop."""
    return asyncio.run(
        assemble_async(descriptor, images, localizations, credentials, signer=signer, compress=compress)
    )


def write_bundle(
    descriptor: DescriptorInput,
    images: PassImages,
    localizations: Optional[Localizations],
    credentials: SigningCredentials,
    output: Union[BinaryIO, str, os.PathLike],
    **kwargs,
) -> int:
    """
    Assemble a bundle and write it to a binary stream or a file path in one
    call. Returns the number of bytes written.
    """
    bundle = assemble(descriptor, images, localizations, credentials, **kwargs)
    if isinstance(output, (str, os.PathLike)):
        with open(output, "wb") as f:
            f.write(bundle)
    else:
        output.write(bundle)
    return len(bundle)
