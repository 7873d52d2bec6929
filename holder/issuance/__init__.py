# OID4VCI issuance - protocol client, proof, polling and orchestration

from holder.issuance.models import (
    AccessToken,
    CredentialOffer,
    CredentialResult,
    Deferred,
    Failed,
    FailureKind,
    IssuerMetadata,
    Issued,
    PollingSession,
    ProofOfPossession,
)
from holder.issuance.orchestrator import IssuanceOrchestrator

__all__ = [
    "AccessToken",
    "CredentialOffer",
    "CredentialResult",
    "Deferred",
    "Failed",
    "FailureKind",
    "IssuerMetadata",
    "Issued",
    "PollingSession",
    "ProofOfPossession",
    "IssuanceOrchestrator",
]
