"""
Pass Router

Builds signed Apple Wallet passes from the configured template.
"""
import logging
from functools import lru_cache
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import Response

from walletpass.core.config import Settings, get_settings
from walletpass.core.constants import PASS_MIME_TYPE
from walletpass.core.errors import PassConfigError, PassCryptoError, PassError, PassValidationError
from walletpass.services.bundle import get_signer
from walletpass.services.credentials import SigningCredentials
from walletpass.services.template import PassTemplate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["passes"])


@lru_cache(maxsize=4)
def _load_template(template_dir: str, key_password: str) -> PassTemplate:
    return PassTemplate.load(template_dir, key_password or None)


_credentials_cache: Dict[tuple, SigningCredentials] = {}


def get_template(config: Settings = Depends(get_settings)) -> PassTemplate:
    """Template for new passes, loaded once per folder."""
    if not config.WALLETPASS_TEMPLATE_DIR:
        raise PassConfigError("WALLETPASS_TEMPLATE_DIR is not configured")
    return _load_template(config.WALLETPASS_TEMPLATE_DIR, config.APPLE_WALLET_KEY_PASSWORD)


def _load_credentials(config: Settings) -> SigningCredentials:
    cache_key = (
        config.APPLE_WALLET_CERT_P12_PATH,
        config.APPLE_WALLET_CERT_PATH,
        config.APPLE_WALLET_KEY_PATH,
        config.APPLE_WALLET_WWDR_CERT_PATH,
    )
    cached = _credentials_cache.get(cache_key)
    if cached is None:
        cached = _credentials_cache[cache_key] = SigningCredentials.from_settings(config)
    return cached


@router.post("/passes")
async def create_pass(
    fields: Dict[str, Any] = Body(..., description="pass.json keys overriding the template"),
    config: Settings = Depends(get_settings),
):
    """
    Create a signed pass.

    Returns:
    - 200: Signed .pkpass file
    - 400: Descriptor or images failed validation
    - 500: Signing not configured or signing failed
    """
    try:
        template = get_template(config)
        pass_ = template.create_pass(fields)
        # configured credentials take precedence over a certificate in the template folder
        if config.signing_configured:
            pass_.credentials = _load_credentials(config)
        bundle_bytes = await pass_.assemble_async(signer=get_signer(config))
    except PassValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "PASS_VALIDATION_FAILED",
                "message": str(e),
                "errors": e.errors,
            },
        )
    except PassConfigError as e:
        logger.error(f"Pass signing misconfigured: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "PASS_SIGNING_MISCONFIGURED",
                "message": str(e),
            },
        )
    except PassCryptoError as e:
        logger.error(f"Failed to sign pass: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "PASS_SIGNING_FAILED",
                "message": "Failed to sign Apple Wallet pass",
            },
        )
    except PassError as e:
        logger.error(f"Failed to create pass: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "PASS_GENERATION_FAILED",
                "message": "Failed to generate Apple Wallet pass",
            },
        )

    filename = f"{pass_.fields.get('serialNumber') or 'pass'}.pkpass"
    # Content-Type must be exactly application/vnd.apple.pkpass (no charset) for iOS Safari
    return Response(
        content=bundle_bytes,
        media_type=PASS_MIME_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Pragma": "no-cache",
            "Expires": "0",
        },
    )
