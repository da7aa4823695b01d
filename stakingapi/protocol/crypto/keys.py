# MIT License
# Copyright (c) 2025 Hashborn

from ecdsa import SigningKey, SECP256k1 # type: ignore
import os
import string
from ..types.common import InvalidPublicKey

# Compressed secp256k1 public key: 1 parity byte + 32 byte X coordinate
COMPRESSED_PUBKEY_LEN = 33


def generate_private_key() -> bytes:
    """Generates a random 32-byte private key."""
    return os.urandom(32)


def public_key_from_private(priv_bytes: bytes) -> bytes:
    """Returns compressed 33-byte public key from private key."""
    sk = SigningKey.from_string(priv_bytes, curve=SECP256k1)
    vk = sk.get_verifying_key()
    return vk.to_string("compressed")


def parse_public_key(raw: str) -> bytes:
    """
    Decodes a hex public key supplied by a client.

    Raises:
        InvalidPublicKey: empty input, non-hex characters or wrong length
    """
    if not raw:
        raise InvalidPublicKey("public key is required")
    # bytes.fromhex tolerates whitespace, a public key must not
    if any(c not in string.hexdigits for c in raw):
        raise InvalidPublicKey("public key is not valid hex")
    try:
        pk = bytes.fromhex(raw)
    except ValueError:
        raise InvalidPublicKey("public key is not valid hex")
    if len(pk) != COMPRESSED_PUBKEY_LEN:
        raise InvalidPublicKey(
            f"invalid public key length: expected {COMPRESSED_PUBKEY_LEN} bytes, got {len(pk)}"
        )
    return pk


def parse_public_key_hex(raw: str) -> str:
    """Same as parse_public_key but returns the normalised (lower-case) hex form."""
    return parse_public_key(raw).hex()
