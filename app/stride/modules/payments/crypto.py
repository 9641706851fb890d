"""
Fernet encryption for influencer payout details.

PAYMENT_ENCRYPTION_KEY must be a urlsafe base64 32-byte key, e.g. the
output of `Fernet.generate_key()`. Without it payout details cannot be
saved or read.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionError(RuntimeError):
    pass


class PaymentCipher:
    def __init__(self, key: str):
        try:
            self._fernet = Fernet(key.encode())
        except (TypeError, ValueError) as e:
            raise EncryptionError("PAYMENT_ENCRYPTION_KEY is not a valid Fernet key") from e

    def encrypt(self, details: dict[str, Any]) -> str:
        return self._fernet.encrypt(json.dumps(details, sort_keys=True).encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> dict[str, Any]:
        try:
            raw = self._fernet.decrypt(token.encode("ascii"))
        except InvalidToken as e:
            raise EncryptionError("Stored payment details cannot be decrypted with the current key") from e
        return json.loads(raw.decode("utf-8"))


def cipher_from_config(config) -> PaymentCipher | None:
    key = (config.get("PAYMENT_ENCRYPTION_KEY") or "").strip()
    if not key:
        return None
    try:
        return PaymentCipher(key)
    except EncryptionError:
        logger.error("PAYMENT_ENCRYPTION_KEY is set but invalid; payout details are disabled")
        return None
