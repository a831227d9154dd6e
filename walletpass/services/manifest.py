"""
manifest.json builder.

The manifest maps every archive path in the bundle to the SHA-1 hex digest of
its bytes. It never lists itself or the signature.
"""
import json
from typing import Dict, Iterable

from walletpass.core.constants import MANIFEST_JSON, SIGNATURE
from walletpass.core.errors import DuplicateEntryError
from walletpass.services.hashing import HashedEntry

RESERVED_PATHS = frozenset({MANIFEST_JSON, SIGNATURE})


def build_manifest(entries: Iterable[HashedEntry]) -> Dict[str, str]:
    """
    Create the manifest mapping, keeping the order entries were given in.

    Raises:
        DuplicateEntryError: If a path appears twice, or an entry uses a
            reserved name (manifest.json / signature)
    """
    manifest: Dict[str, str] = {}
    for entry in entries:
        if entry.path in manifest or entry.path in RESERVED_PATHS:
            raise DuplicateEntryError(entry.path)
        manifest[entry.path] = entry.hash
    return manifest


def serialize_manifest(entries: Iterable[HashedEntry]) -> bytes:
    """
    Build manifest.json bytes.

    These exact bytes are both written to the archive and signed, so they
    must be produced once per bundle and reused.
    """
    manifest = build_manifest(entries)
    return json.dumps(manifest, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
