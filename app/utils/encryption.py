import base64
import binascii
import os
from typing import NamedTuple, Optional

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.config.settings import Settings, settings as default_settings


class EncryptedValue(NamedTuple):
    ciphertext: Optional[str]
    last4: Optional[str]


def _decode_key(raw: str) -> bytes:
    if not raw:
        raise RuntimeError("IIN_ENCRYPTION_KEY is required")

    try:
        if len(raw) == 44:
            key = base64.b64decode(raw, validate=True)
        elif len(raw) == 64:
            key = bytes.fromhex(raw)
        else:
            raise RuntimeError("IIN_ENCRYPTION_KEY must be 32 bytes (base64 or hex)")
    except (binascii.Error, ValueError) as e:
        raise RuntimeError("IIN_ENCRYPTION_KEY is not valid base64 or hex") from e

    if len(key) != 32:
        raise RuntimeError("IIN_ENCRYPTION_KEY must decode to 32 bytes")
    return key


class IinEncryptor:
    """AES-256-GCM encryption for the national ID number.

    Ciphertext format is ``<nonce b64>:<ciphertext+tag b64>``; only the last
    four digits are kept in clear for display.
    """

    def __init__(self, config: Settings = default_settings):
        self._raw_key = config.IIN_ENCRYPTION_KEY

    def encrypt(self, value: Optional[str]) -> EncryptedValue:
        if not value:
            return EncryptedValue(None, None)

        normalized = "".join(str(value).split())
        if not normalized:
            return EncryptedValue(None, None)

        aes = AESGCM(_decode_key(self._raw_key))
        nonce = os.urandom(12)
        ciphertext = aes.encrypt(nonce, normalized.encode("utf-8"), None)

        return EncryptedValue(
            ciphertext=":".join(
                [
                    base64.b64encode(nonce).decode(),
                    base64.b64encode(ciphertext).decode(),
                ]
            ),
            last4=normalized[-4:],
        )
