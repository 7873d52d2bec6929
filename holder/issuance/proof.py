"""Proof-of-possession builder.

Builds the ``openid4vci-proof+jwt`` sent with a credential request.
"""

import logging
import time
from typing import Callable, Protocol

from holder.core.exceptions import SigningError
from holder.issuance.codec import b64url_encode, encode_segment
from holder.issuance.models import ProofOfPossession

log = logging.getLogger(__name__)

PROOF_TYP = "openid4vci-proof+jwt"


class Signer(Protocol):
    """Signs data with a key held by reference.

    Raises SigningError for unknown keys and algorithm mismatches.
    """

    def sign(self, key_ref: str, data: bytes, alg: str) -> bytes:
        ...


class ProofBuilder:
    """Builds proofs for one holder key.

    Args:
        signer: Signer holding the key
        key_ref: Local key reference passed to the signer
        kid: Verification method id from the DID document (``kid`` and ``iss``)
        alg: JWS algorithm
        clock: Returns current unix time; replaced in tests
    """

    def __init__(
        self,
        signer: Signer,
        key_ref: str,
        kid: str,
        alg: str = "EdDSA",
        clock: Callable[[], float] = time.time,
    ):
        self._signer = signer
        self._key_ref = key_ref
        self._kid = kid
        self._alg = alg
        self._clock = clock

    def build(self, audience: str, nonce: str) -> ProofOfPossession:
        """Build a proof binding ``nonce`` to the holder key.

        Raises:
            SigningError: Signer failed (unknown key, algorithm mismatch).
        """
        header = {"typ": PROOF_TYP, "alg": self._alg, "kid": self._kid}
        payload = {
            "aud": audience,
            "iat": int(self._clock()),
            "nonce": nonce,
            "iss": self._kid,
        }
        signing_input = f"{encode_segment(header)}.{encode_segment(payload)}"

        try:
            signature = self._signer.sign(
                self._key_ref, signing_input.encode("ascii"), self._alg
            )
        except SigningError:
            raise
        except Exception as e:
            raise SigningError(f"Signer failed: {e}") from e

        return ProofOfPossession(jwt=f"{signing_input}.{b64url_encode(signature)}")
