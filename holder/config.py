"""Configuration for the OID4VCI holder.

Environment-based configuration with sensible defaults for a local
issuer on port 8080 and the holder's DIDComm endpoint on port 8081.
"""

import json
import os

# Holder identity
HOLDER_DID = os.getenv("HOLDER_DID", "did:web:localhost%3A8081")
HOLDER_KEY_REF = os.getenv("HOLDER_KEY_REF", "holder-key")
# Verification method id from the DID document (differs from the local key ref)
HOLDER_KID = os.getenv("HOLDER_KID", f"{HOLDER_DID}#key-1")
HOLDER_KEY_SEED = os.getenv("HOLDER_KEY_SEED", "")  # hex, 32 bytes; random if empty

# Credential request
HOLDER_PROOF_ALG = os.getenv("HOLDER_PROOF_ALG", "EdDSA")
HOLDER_CREDENTIAL_TYPES = [
    t.strip()
    for t in os.getenv(
        "HOLDER_CREDENTIAL_TYPES", "VerifiableCredential,UniversityDegreeCredential"
    ).split(",")
    if t.strip()
]
HOLDER_CREDENTIAL_FORMAT = os.getenv("HOLDER_CREDENTIAL_FORMAT", "jwt_vc_json")

# Timing (seconds)
CONFIRMATION_TIMEOUT = float(os.getenv("HOLDER_CONFIRMATION_TIMEOUT", "4.0"))
POLL_INTERVAL = float(os.getenv("HOLDER_POLL_INTERVAL", "1.0"))
HTTP_TIMEOUT = float(os.getenv("HOLDER_HTTP_TIMEOUT", "10.0"))

# Inbound DIDComm endpoint
LISTEN_HOST = os.getenv("HOLDER_LISTEN_HOST", "0.0.0.0")
LISTEN_PORT = int(os.getenv("HOLDER_LISTEN_PORT", "8081"))
DIDCOMM_PATH = "/didcomm"

# DID -> DIDComm service endpoint, e.g. {"did:web:issuer": "http://localhost:8080/didcomm"}
DIDCOMM_ENDPOINTS_RAW = os.getenv("HOLDER_DIDCOMM_ENDPOINTS", "{}")

# Interactive chat after a successful issuance
CHAT_ENABLED = os.getenv("HOLDER_CHAT_ENABLED", "false").lower() == "true"

# Logging
LOG_LEVEL = os.getenv("HOLDER_LOG_LEVEL", "INFO")


def get_didcomm_endpoints() -> dict[str, str]:
    """Parse HOLDER_DIDCOMM_ENDPOINTS. Returns empty dict if malformed."""
    try:
        endpoints = json.loads(DIDCOMM_ENDPOINTS_RAW)
    except json.JSONDecodeError:
        return {}
    if not isinstance(endpoints, dict):
        return {}
    return {str(k): str(v) for k, v in endpoints.items()}


def validate_config() -> list[str]:
    """Validate configuration and return list of issues."""
    issues = []

    if HOLDER_KEY_SEED:
        try:
            seed = bytes.fromhex(HOLDER_KEY_SEED)
        except ValueError:
            issues.append("HOLDER_KEY_SEED must be hex encoded")
        else:
            if len(seed) != 32:
                issues.append(f"HOLDER_KEY_SEED must be 32 bytes, got {len(seed)}")

    if HOLDER_PROOF_ALG != "EdDSA":
        issues.append(f"Unsupported HOLDER_PROOF_ALG: {HOLDER_PROOF_ALG}")

    if not HOLDER_CREDENTIAL_TYPES:
        issues.append("HOLDER_CREDENTIAL_TYPES must name at least one type")

    if CONFIRMATION_TIMEOUT <= 0:
        issues.append("HOLDER_CONFIRMATION_TIMEOUT must be positive")

    if POLL_INTERVAL <= 0:
        issues.append("HOLDER_POLL_INTERVAL must be positive")

    try:
        endpoints = json.loads(DIDCOMM_ENDPOINTS_RAW)
        if not isinstance(endpoints, dict):
            issues.append("HOLDER_DIDCOMM_ENDPOINTS must be a JSON object")
    except json.JSONDecodeError:
        issues.append("HOLDER_DIDCOMM_ENDPOINTS is not valid JSON")

    return issues
