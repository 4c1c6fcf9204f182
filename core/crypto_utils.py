from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, modes

from core.primitives import Envelope, canonical_json_bytes
from core.suites import derive_key, resolve


def encrypt_record(record: Dict[str, Any], algo_name: Optional[str], secret: str, *, active: str = "AES") -> Envelope:
    """Encrypt a JSON-serializable record under CBC + PKCS7.

    ``algo_name=None`` falls back to ``active``; an explicit name must resolve.
    A fresh random IV is drawn for every call.
    """
    profile = resolve(active if algo_name is None else algo_name)
    key = derive_key(secret, profile)
    iv = os.urandom(profile.iv_length)

    padder = padding.PKCS7(profile.block_bits).padder()
    plaintext = padder.update(canonical_json_bytes(record)) + padder.finalize()

    encryptor = Cipher(profile.algorithm(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(plaintext) + encryptor.finalize()

    return Envelope(algo=profile.name, iv=iv, data=ciphertext)


def decrypt_envelope(envelope: Envelope, secret: str) -> Dict[str, Any]:
    """Inverse of encrypt_record; raises ValueError on bad IV, padding or JSON."""
    profile = resolve(envelope.algo)
    if len(envelope.iv) != profile.iv_length:
        raise ValueError(f"IV length {len(envelope.iv)} does not match {profile.name} ({profile.iv_length})")

    key = derive_key(secret, profile)
    decryptor = Cipher(profile.algorithm(key), modes.CBC(envelope.iv)).decryptor()
    padded = decryptor.update(envelope.data) + decryptor.finalize()

    unpadder = padding.PKCS7(profile.block_bits).unpadder()
    plaintext = unpadder.update(padded) + unpadder.finalize()
    return json.loads(plaintext.decode("utf-8"))
