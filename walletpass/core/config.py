from pydantic import BaseModel
import os
import logging
from functools import lru_cache

from walletpass.core.errors import PassConfigError


class Settings(BaseModel):
    # Environment name: local, dev, staging, prod
    ENV: str = os.getenv("ENV", "dev")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Template folder (pass.json + images + *.lproj) used by the HTTP surface
    WALLETPASS_TEMPLATE_DIR: str = os.getenv("WALLETPASS_TEMPLATE_DIR", "")

    # Signer certificate: P12 is preferred, PEM cert/key is the fallback
    APPLE_WALLET_CERT_P12_PATH: str = os.getenv("APPLE_WALLET_CERT_P12_PATH", "")
    APPLE_WALLET_CERT_P12_PASSWORD: str = os.getenv("APPLE_WALLET_CERT_P12_PASSWORD", "")
    APPLE_WALLET_CERT_PATH: str = os.getenv("APPLE_WALLET_CERT_PATH", "")
    APPLE_WALLET_KEY_PATH: str = os.getenv("APPLE_WALLET_KEY_PATH", "")
    APPLE_WALLET_KEY_PASSWORD: str = os.getenv("APPLE_WALLET_KEY_PASSWORD", "")

    # WWDR intermediate overrides (the bundled certificate is used when both are empty)
    APPLE_WALLET_WWDR_CERT_PATH: str = os.getenv("APPLE_WALLET_WWDR_CERT_PATH", "")
    APPLE_WWDR_CERT_PEM: str = os.getenv("APPLE_WWDR_CERT_PEM", "")

    # Signing strategy: "inprocess" (CMS built in Python) or "openssl" (openssl cms subprocess)
    WALLETPASS_SIGNING_BACKEND: str = os.getenv("WALLETPASS_SIGNING_BACKEND", "inprocess")
    WALLETPASS_OPENSSL_BIN: str = os.getenv("WALLETPASS_OPENSSL_BIN", "openssl")

    # Deflate pass.json / images / strings (manifest.json and signature are always stored)
    WALLETPASS_COMPRESS_ENTRIES: bool = os.getenv("WALLETPASS_COMPRESS_ENTRIES", "false").lower() == "true"

    @property
    def p12_configured(self) -> bool:
        return bool(self.APPLE_WALLET_CERT_P12_PATH)

    @property
    def pem_configured(self) -> bool:
        return bool(self.APPLE_WALLET_CERT_PATH and self.APPLE_WALLET_KEY_PATH)

    @property
    def signing_configured(self) -> bool:
        """True when either a P12 bundle or a PEM cert/key pair is configured."""
        return self.p12_configured or self.pem_configured


settings = Settings()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings instance used as a FastAPI dependency (overridable in tests)."""
    return settings


def validate_config(config: Settings = settings) -> None:
    """Validate signing configuration at startup. Raises PassConfigError if invalid."""
    logger = logging.getLogger(__name__)

    missing = []
    if not config.signing_configured:
        missing.append("APPLE_WALLET_CERT_P12_PATH or APPLE_WALLET_CERT_PATH + APPLE_WALLET_KEY_PATH")
    if not config.WALLETPASS_TEMPLATE_DIR:
        missing.append("WALLETPASS_TEMPLATE_DIR")
    if config.WALLETPASS_SIGNING_BACKEND not in ("inprocess", "openssl"):
        missing.append(
            f"WALLETPASS_SIGNING_BACKEND must be 'inprocess' or 'openssl', got '{config.WALLETPASS_SIGNING_BACKEND}'"
        )

    if missing:
        logger.error("Wallet pass configuration incomplete: %s", ", ".join(missing))
        raise PassConfigError(f"Missing wallet pass configuration: {', '.join(missing)}")
