"""JWT credential codec.

Decodes ``jwt_vc_json`` credentials into their claims set. Signature
verification belongs to the issuer trust layer and is not done here.
"""

import base64
import json
from typing import Any, Optional

from holder.core.exceptions import CredentialCodecError


def b64url_encode(data: bytes) -> str:
    """base64url without padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64url_decode(data: str) -> bytes:
    """base64url decode, tolerating missing padding."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def encode_segment(obj: dict[str, Any]) -> str:
    """Encode a JSON object as a compact JWT segment."""
    return b64url_encode(json.dumps(obj, separators=(",", ":")).encode("utf-8"))


class CredentialCodec:
    """Encode/decode compact JWT credentials."""

    def decode(self, credential: str) -> dict[str, Any]:
        """Decode a compact JWT credential into its payload claims.

        Args:
            credential: header.payload.signature

        Returns:
            The payload as a dict.

        Raises:
            CredentialCodecError: If the credential is not a decodable JWT.
        """
        if not isinstance(credential, str):
            raise CredentialCodecError(
                f"Credential must be a string, got {type(credential).__name__}"
            )

        parts = credential.split(".")
        if len(parts) != 3:
            raise CredentialCodecError(
                f"Credential must have 3 parts, got {len(parts)}"
            )

        try:
            payload = json.loads(b64url_decode(parts[1]))
        except (ValueError, UnicodeDecodeError) as e:
            raise CredentialCodecError(f"Credential payload is not JSON: {e}") from e

        if not isinstance(payload, dict):
            raise CredentialCodecError("Credential payload must be a JSON object")
        return payload

    def encode(
        self,
        claims: dict[str, Any],
        header: Optional[dict[str, Any]] = None,
        signature: bytes = b"",
    ) -> str:
        """Encode claims as a compact JWT (issuer side, used for fixtures)."""
        header = header or {"alg": "EdDSA", "typ": "JWT"}
        return f"{encode_segment(header)}.{encode_segment(claims)}.{b64url_encode(signature)}"
