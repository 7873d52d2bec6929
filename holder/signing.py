"""Holder key signing.

Local in-memory Ed25519 key store backed by libsodium, implementing the
``Signer`` contract of the proof builder.
"""

import logging
from typing import Optional

import pysodium

from holder.core.exceptions import SigningError

log = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = {"EdDSA", "Ed25519"}


class Ed25519Signer:
    """Ed25519 signer holding seeds by key reference."""

    def __init__(self):
        self._keys: dict[str, tuple[bytes, bytes]] = {}

    def add_key(self, key_ref: str, seed: Optional[bytes] = None) -> bytes:
        """Add a key from a 32-byte seed (random if omitted).

        Returns:
            The public verification key.
        """
        if seed is None:
            seed = pysodium.randombytes(pysodium.crypto_sign_SEEDBYTES)
        if len(seed) != pysodium.crypto_sign_SEEDBYTES:
            raise ValueError(
                f"Seed must be {pysodium.crypto_sign_SEEDBYTES} bytes, got {len(seed)}"
            )
        verkey, sigkey = pysodium.crypto_sign_seed_keypair(seed)
        self._keys[key_ref] = (verkey, sigkey)
        log.debug(f"Added Ed25519 key {key_ref}")
        return verkey

    def public_key(self, key_ref: str) -> bytes:
        if key_ref not in self._keys:
            raise SigningError(f"Key not found: {key_ref}")
        return self._keys[key_ref][0]

    def sign(self, key_ref: str, data: bytes, alg: str) -> bytes:
        """Sign data with the referenced key.

        Raises:
            SigningError: Unknown key reference or unsupported algorithm.
        """
        if alg not in SUPPORTED_ALGORITHMS:
            raise SigningError(f"Algorithm mismatch: key {key_ref} is Ed25519, requested {alg}")
        if key_ref not in self._keys:
            raise SigningError(f"Key not found: {key_ref}")
        _, sigkey = self._keys[key_ref]
        return pysodium.crypto_sign_detached(data, sigkey)
