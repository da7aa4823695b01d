# MIT License
# Copyright (c) 2025 Hashborn

from typing import Dict

# Page size for paginated delegation listings
MAX_PAGINATION_LIMIT = 100

# Witness program parameters (BIP141 / BIP341)
WITNESS_V0 = 0
WITNESS_V1_TAPROOT = 1
P2WPKH_PROGRAM_LEN = 20
P2WSH_PROGRAM_LEN = 32
TAPROOT_PROGRAM_LEN = 32


class BTCNetParams:
    def __init__(self,
                 name: str,
                 bech32_hrp: str):
        self.name = name
        self.bech32_hrp = bech32_hrp

    def __repr__(self) -> str:
        return f"BTCNetParams({self.name})"


NETWORKS: Dict[str, BTCNetParams] = {
    "mainnet": BTCNetParams(
        name="mainnet",
        bech32_hrp="bc",
    ),
    "testnet": BTCNetParams(
        name="testnet",
        bech32_hrp="tb",
    ),
    "signet": BTCNetParams(
        name="signet",
        bech32_hrp="tb",
    ),
    "regtest": BTCNetParams(
        name="regtest",
        bech32_hrp="bcrt",
    ),
}


def get_net_params(name: str) -> BTCNetParams:
    """Looks up BTC network parameters by name (mainnet/testnet/signet/regtest)."""
    try:
        return NETWORKS[name]
    except KeyError:
        raise ValueError(f"unsupported BTC network: {name}")
