# MIT License
# Copyright (c) 2025 Hashborn

import bech32 # type: ignore
from dataclasses import dataclass
from typing import List, Tuple
from ..config.params import (
    BTCNetParams, WITNESS_V0, WITNESS_V1_TAPROOT,
    P2WPKH_PROGRAM_LEN, P2WSH_PROGRAM_LEN, TAPROOT_PROGRAM_LEN,
)
from ..types.common import InvalidAddress

# Checksum constants: BIP173 (segwit v0) and BIP350 (v1+)
BECH32_CONST = 1
BECH32M_CONST = 0x2bc830a3

MAX_ADDRESS_LEN = 90


@dataclass(frozen=True)
class TaprootAddress:
    address: str            # Normalised lower-case form
    network: str
    witness_program: bytes  # 32-byte x-only output key

    @property
    def output_key_hex(self) -> str:
        return self.witness_program.hex()


def _split_bech32(addr: str) -> Tuple[str, List[int], int]:
    """Splits a bech32/bech32m string into (hrp, data words, checksum constant)."""
    if any(ord(c) < 33 or ord(c) > 126 for c in addr):
        raise ValueError("invalid characters in address")
    if addr.lower() != addr and addr.upper() != addr:
        raise ValueError("mixed case address")
    if len(addr) > MAX_ADDRESS_LEN:
        raise ValueError("address too long")

    addr = addr.lower()
    pos = addr.rfind("1")
    if pos < 1 or pos + 7 > len(addr):
        raise ValueError("invalid separator position")

    hrp = addr[:pos]
    if not all(c in bech32.CHARSET for c in addr[pos + 1:]):
        raise ValueError("invalid bech32 character")
    data = [bech32.CHARSET.find(c) for c in addr[pos + 1:]]

    const = bech32.bech32_polymod(bech32.bech32_hrp_expand(hrp) + data)
    if const not in (BECH32_CONST, BECH32M_CONST):
        raise ValueError("invalid checksum")
    return hrp, data[:-6], const


def decode_segwit_address(addr: str, net: BTCNetParams) -> Tuple[int, bytes]:
    """Decodes a native segwit address to (witness version, witness program)."""
    hrp, data, const = _split_bech32(addr)
    if hrp != net.bech32_hrp:
        raise ValueError(f"address is not for network {net.name}")
    if not data:
        raise ValueError("empty witness data")

    witver = data[0]
    if witver > 16:
        raise ValueError("invalid witness version")
    program = bech32.convertbits(data[1:], 5, 8, False)
    if program is None or len(program) < 2 or len(program) > 40:
        raise ValueError("invalid witness program")
    if witver == WITNESS_V0:
        if const != BECH32_CONST:
            raise ValueError("segwit v0 address must use bech32 checksum")
        if len(program) not in (P2WPKH_PROGRAM_LEN, P2WSH_PROGRAM_LEN):
            raise ValueError("invalid segwit v0 program length")
    elif const != BECH32M_CONST:
        raise ValueError("segwit v1+ address must use bech32m checksum")
    return witver, bytes(program)


def encode_segwit_address(witver: int, program: bytes, net: BTCNetParams) -> str:
    """Encodes a witness program for the given network (bech32 for v0, bech32m otherwise)."""
    words = bech32.convertbits(list(program), 8, 5)
    if words is None:
        raise ValueError("Error converting to bech32 words")
    data = [witver] + words
    const = BECH32_CONST if witver == WITNESS_V0 else BECH32M_CONST

    values = bech32.bech32_hrp_expand(net.bech32_hrp) + data
    polymod = bech32.bech32_polymod(values + [0] * 6) ^ const
    checksum = [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]
    return net.bech32_hrp + "1" + "".join(bech32.CHARSET[d] for d in data + checksum)


def encode_taproot_address(output_key: bytes, net: BTCNetParams) -> str:
    if len(output_key) != TAPROOT_PROGRAM_LEN:
        raise ValueError("taproot output key must be 32 bytes")
    return encode_segwit_address(WITNESS_V1_TAPROOT, output_key, net)


def decode_taproot_address(raw: str, net: BTCNetParams) -> TaprootAddress:
    """
    Validates a staker address. Only Taproot (P2TR) addresses are accepted,
    any other segwit kind is rejected rather than coerced.

    Raises:
        InvalidAddress: empty, unparseable for the network, or not Taproot
    """
    if not raw:
        raise InvalidAddress("address is required")
    try:
        witver, program = decode_segwit_address(raw, net)
    except ValueError as e:
        raise InvalidAddress(f"invalid BTC address: {e}")

    if witver != WITNESS_V1_TAPROOT or len(program) != TAPROOT_PROGRAM_LEN:
        raise InvalidAddress("address is not a Taproot address")
    return TaprootAddress(address=raw.lower(), network=net.name, witness_program=program)


def is_valid_taproot_address(raw: str, net: BTCNetParams) -> bool:
    try:
        decode_taproot_address(raw, net)
        return True
    except InvalidAddress:
        return False
