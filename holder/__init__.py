"""OID4VCI holder with DIDComm token confirmation."""

__version__ = "0.1.0"
