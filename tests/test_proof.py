"""Tests for the proof-of-possession builder."""

import json

import pytest

from holder.core.exceptions import SigningError
from holder.issuance.codec import b64url_decode
from holder.issuance.proof import PROOF_TYP, ProofBuilder

from tests.conftest import HOLDER_KID, ISSUER_URL, HashSigner


def _parts(jwt: str):
    header, payload, signature = jwt.split(".")
    return json.loads(b64url_decode(header)), json.loads(b64url_decode(payload)), signature


class TestProofBuilder:
    """Tests for ProofBuilder.build."""

    def test_header_fields(self, proof_builder):
        """Header carries typ, alg and the verification method kid."""
        proof = proof_builder.build(audience=ISSUER_URL, nonce="nonce-123")
        header, _, _ = _parts(proof.jwt)
        assert header == {"typ": PROOF_TYP, "alg": "EdDSA", "kid": HOLDER_KID}

    def test_payload_binds_nonce(self, proof_builder):
        """Payload binds the c_nonce to the issuer audience."""
        proof = proof_builder.build(audience=ISSUER_URL, nonce="nonce-123")
        _, payload, _ = _parts(proof.jwt)
        assert payload == {
            "aud": ISSUER_URL,
            "iat": 1_700_000_000,
            "nonce": "nonce-123",
            "iss": HOLDER_KID,
        }

    def test_signature_over_signing_input(self, proof_builder):
        """Signature is computed over header.payload."""
        proof = proof_builder.build(audience=ISSUER_URL, nonce="n")
        signing_input, _, signature = proof.jwt.rpartition(".")
        expected = HashSigner().sign("holder-key", signing_input.encode("ascii"), "EdDSA")
        assert b64url_decode(signature) == expected

    def test_proof_type_jwt(self, proof_builder):
        """Proof dict uses proof_type 'jwt'."""
        proof = proof_builder.build(audience=ISSUER_URL, nonce="n")
        assert proof.to_dict()["proof_type"] == "jwt"

    def test_unknown_key_raises_signing_error(self):
        """Unknown key reference surfaces as SigningError."""
        builder = ProofBuilder(HashSigner(), "missing-key", HOLDER_KID)
        with pytest.raises(SigningError, match="Key not found"):
            builder.build(audience=ISSUER_URL, nonce="n")

    def test_algorithm_mismatch_raises_signing_error(self):
        """Algorithm mismatch surfaces as SigningError."""
        builder = ProofBuilder(HashSigner(), "holder-key", HOLDER_KID, alg="ES256")
        with pytest.raises(SigningError, match="mismatch"):
            builder.build(audience=ISSUER_URL, nonce="n")

    def test_unexpected_signer_failure_wrapped(self):
        """Arbitrary signer exceptions are wrapped in SigningError."""

        class BrokenSigner:
            def sign(self, key_ref, data, alg):
                raise RuntimeError("HSM offline")

        builder = ProofBuilder(BrokenSigner(), "holder-key", HOLDER_KID)
        with pytest.raises(SigningError, match="HSM offline"):
            builder.build(audience=ISSUER_URL, nonce="n")
