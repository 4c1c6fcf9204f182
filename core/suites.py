from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping

from cryptography.hazmat.decrepit.ciphers.algorithms import TripleDES
from cryptography.hazmat.primitives.ciphers import algorithms


class UnsupportedAlgorithm(ValueError):
    """Requested cipher name is not in the registry."""


@dataclass(frozen=True)
class AlgorithmProfile:
    """Parameter profile of one supported block cipher (CBC mode)."""

    name: str
    cipher_id: str
    key_length: int
    iv_length: int
    algorithm: Callable[[bytes], Any] = field(repr=False, compare=False)

    @property
    def block_bits(self) -> int:
        return self.iv_length * 8


SUITES: Mapping[str, AlgorithmProfile] = MappingProxyType(
    {
        "AES": AlgorithmProfile(
            name="AES",
            cipher_id="aes-256-cbc",
            key_length=32,
            iv_length=16,
            algorithm=algorithms.AES,
        ),
        # 3DES (EDE3); still addressed as "DES" on the wire.
        "DES": AlgorithmProfile(
            name="DES",
            cipher_id="des-ede3-cbc",
            key_length=24,
            iv_length=8,
            algorithm=TripleDES,
        ),
    }
)


def normalize_name(name: Any) -> str:
    if not isinstance(name, str):
        raise UnsupportedAlgorithm(f"Unsupported algorithm: {name!r}")
    return name.upper()


def resolve(name: Any) -> AlgorithmProfile:
    """Look up a profile by case-insensitive name; unknown names are rejected."""
    key = normalize_name(name)
    try:
        return SUITES[key]
    except KeyError:
        raise UnsupportedAlgorithm(f"Unsupported algorithm: {name}") from None


def supported_names() -> tuple:
    return tuple(SUITES)


def derive_key(secret: str, profile: AlgorithmProfile) -> bytes:
    """SHA-256 of the UTF-8 secret, truncated to the profile's key length."""
    return hashlib.sha256(str(secret).encode("utf-8")).digest()[: profile.key_length]
