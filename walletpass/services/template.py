"""
Pass templates.

A template folder holds everything passes of one kind share:

    MyPass.pass/
        pass.json                      shared pass.json keys, including the style
        icon.png, icon@2x.png, logo.png, ...
        fr.lproj/pass.strings          translations
        fr.lproj/logo.png              localized images
        com.example.mypass.pem         signer certificate + key
                                       (passTypeIdentifier without "pass.")

Passes are created from a template by overlaying per-pass fields.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from walletpass.core.constants import PASS_JSON, PASS_STYLES
from walletpass.core.errors import PassConfigError, PassIOError, PassValidationError
from walletpass.services.bundle import assemble, assemble_async, write_bundle
from walletpass.services.credentials import SigningCredentials
from walletpass.services.images import PassImages
from walletpass.services.localizations import Localizations

logger = logging.getLogger(__name__)


class Pass:
    """A single pass: template data plus its own fields, ready to be bundled."""

    def __init__(
        self,
        fields: Dict[str, Any],
        images: PassImages,
        localizations: Localizations,
        credentials: Optional[SigningCredentials] = None,
    ):
        self.fields = fields
        self.images = images
        self.localizations = localizations
        self.credentials = credentials

    def _credentials(self) -> SigningCredentials:
        if self.credentials is None:
            raise PassConfigError("Pass signing certificates not configured")
        return self.credentials

    async def assemble_async(self, **kwargs) -> bytes:
        return await assemble_async(self.fields, self.images, self.localizations, self._credentials(), **kwargs)

    def assemble(self, **kwargs) -> bytes:
        return assemble(self.fields, self.images, self.localizations, self._credentials(), **kwargs)

    def write(self, output, **kwargs) -> int:
        return write_bundle(self.fields, self.images, self.localizations, self._credentials(), output, **kwargs)


class PassTemplate:
    """Shared fields, images, localizations and credentials for a kind of pass."""

    def __init__(
        self,
        style: str,
        fields: Optional[Dict[str, Any]] = None,
        images: Optional[PassImages] = None,
        localizations: Optional[Localizations] = None,
        credentials: Optional[SigningCredentials] = None,
    ):
        if style not in PASS_STYLES:
            raise ValueError(f"Unsupported pass style {style}")
        self.style = style
        self.fields = dict(fields or {})
        self.fields.setdefault(style, {})
        self.images = images or PassImages()
        self.localizations = localizations or Localizations()
        self.credentials = credentials

    @classmethod
    def load(
        cls,
        folder: Union[str, os.PathLike],
        key_password: Optional[str] = None,
    ) -> "PassTemplate":
        """
        Load a template folder.

        The certificate file is optional; without it credentials must be set
        before passes are bundled.

        Raises:
            PassIOError: Folder or pass.json missing / unreadable
            PassValidationError: pass.json is not valid JSON or has no known style
            PassCryptoError: The certificate file exists but cannot be decoded
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise PassIOError(f"Path {folder} must be a directory!", str(folder))

        pass_json_path = folder / PASS_JSON
        try:
            fields = json.loads(pass_json_path.read_text(encoding="utf-8"))
        except OSError as e:
            raise PassIOError(f"Cannot read {pass_json_path}: {e.strerror or e}", str(pass_json_path)) from e
        except json.JSONDecodeError as e:
            raise PassValidationError(f"Invalid {PASS_JSON} in {folder}: {e}") from e

        style = next((s for s in PASS_STYLES if s in fields), None)
        if style is None:
            raise PassValidationError("Unknown pass style!")
        # written back by the assembler
        fields.pop("formatVersion", None)

        template = cls(
            style,
            fields,
            images=PassImages().load_from_directory(folder),
            localizations=Localizations().load(folder),
        )

        pass_type_identifier = fields.get("passTypeIdentifier")
        if isinstance(pass_type_identifier, str):
            template.credentials = SigningCredentials.from_template_folder(
                folder, pass_type_identifier, key_password
            )
        if template.credentials is None:
            logger.info("Template %s has no signer certificate", folder)

        logger.debug(f"Loaded {style} template from {folder} ({len(template.images)} images)")
        return template

    def create_pass(self, fields: Optional[Dict[str, Any]] = None) -> Pass:
        """
        Create a pass with the template fields overlaid by `fields`.

        Images and localizations are copied, so changes to the pass do not
        leak back into the template.
        """
        merged = {**self.fields, **(fields or {})}
        return Pass(merged, self.images.copy(), self.localizations.copy(), self.credentials)
