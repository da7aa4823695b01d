# MIT License
# Copyright (c) 2025 Hashborn

import argparse
import hashlib
import logging
import os
import random
import sys
import time
import yaml
from ..core.service import StakingService
from ..protocol.config.server import Config
from ..protocol.crypto.addresses import encode_taproot_address, is_valid_taproot_address
from ..protocol.crypto.keys import generate_private_key, public_key_from_private
from ..protocol.types.common import DelegationState
from ..protocol.types.delegation import DelegationRecord, TimelockTx
from ..rpc.api import start_rpc_server
from ..storage.db import StorageDB

logger = logging.getLogger(__name__)

CONFIG_FILE = "config.yml"

# Rough state mix for seeded devnet delegations
SEED_STATE_WEIGHTS = {
    DelegationState.ACTIVE: 6,
    DelegationState.UNBONDING_REQUESTED: 1,
    DelegationState.UNBONDING: 1,
    DelegationState.UNBONDED: 2,
    DelegationState.WITHDRAWN: 1,
}


def seed_devnet(db: StorageDB, config: Config, num_fps: int, num_stakers: int,
                delegations_per_staker: int, rng: random.Random):
    """Fills an empty database with generated finality providers, stakers and delegations."""
    net = config.server.btc_net_params
    fp_keys = [public_key_from_private(generate_private_key()).hex() for _ in range(num_fps)]
    now = int(time.time())
    states = list(SEED_STATE_WEIGHTS)
    weights = list(SEED_STATE_WEIGHTS.values())
    height = 800_000

    for _ in range(num_stakers):
        staker_pub = public_key_from_private(generate_private_key())
        # Untweaked x-only key, good enough for a local devnet
        address = encode_taproot_address(staker_pub[1:], net)
        if not is_valid_taproot_address(address, net):
            raise ValueError(f"generated address {address} does not decode for {net.name}")
        db.save_pk_address_mapping(staker_pub.hex(), address)

        for _ in range(delegations_per_staker):
            height += rng.randint(1, 20)
            start_ts = now - rng.randint(0, 30 * 24 * 3600)
            tx_hash = hashlib.sha256(os.urandom(32)).hexdigest()
            db.save_delegation(DelegationRecord(
                staking_tx_hash_hex=tx_hash,
                staker_pk_hex=staker_pub.hex(),
                finality_provider_pk_hex=rng.choice(fp_keys),
                staking_value=rng.randint(1, 500) * 100_000,
                state=rng.choices(states, weights=weights)[0],
                staking_tx=TimelockTx(
                    tx_hex=os.urandom(64).hex(),
                    output_index=0,
                    start_timestamp=start_ts,
                    start_height=height,
                    timelock=64000,
                ),
            ))
        print(f"Staker {staker_pub.hex()} ({address}): {delegations_per_staker} delegations")

    print("\nFinality providers:")
    for fp in fp_keys:
        print(f"  {fp}")


def cmd_init(args):
    """Write a default config and seed a devnet database."""
    data_dir = args.datadir
    os.makedirs(data_dir, exist_ok=True)

    config_path = os.path.join(data_dir, CONFIG_FILE)
    try:
        if os.path.exists(config_path):
            print(f"Config already exists at {config_path}")
            config = Config.load(config_path)
        else:
            config = Config()
            config.server.btc_net = args.btc_net
            config.server.db_path = os.path.join(data_dir, "staking.db")
            config.validate_all()
            config.dump(config_path)
            print(f"Wrote config to {config_path}")
    except (OSError, ValueError, yaml.YAMLError) as e:
        logging.error(f"Invalid config {config_path}: {e}")
        sys.exit(1)

    if args.no_seed:
        return

    db = StorageDB(config.server.db_path)
    try:
        seed_devnet(db, config, args.fps, args.stakers, args.delegations, random.Random(args.seed))
    finally:
        db.close()
    print(f"\nSeeded {config.server.db_path}")


def cmd_run(args):
    config_path = args.config or os.path.join(args.datadir, CONFIG_FILE)
    try:
        config = Config.load(config_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logging.error(f"Failed to load config {config_path}: {e}")
        sys.exit(1)

    server = config.server
    if args.host:
        server.host = args.host
    if args.port is not None:
        server.port = args.port
    logging.getLogger().setLevel(server.logging_level)

    db = StorageDB(server.db_path)
    service = StakingService(db, server.btc_net_params, page_size=server.max_page_size)

    logger.info(f"Starting staking API on {server.host}:{server.port} (network: {server.btc_net}, db: {server.db_path})")
    try:
        start_rpc_server(service, server)
    except KeyboardInterrupt:
        pass
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Staking API CLI")
    parser.add_argument("--datadir", default="./.stakingapi", help="Data directory")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Init command
    init_parser = subparsers.add_parser("init", help="Write default config and seed a devnet database")
    init_parser.add_argument("--btc-net", default="signet", help="BTC network (mainnet/testnet/signet/regtest)")
    init_parser.add_argument("--fps", type=int, default=3, help="Finality providers to generate")
    init_parser.add_argument("--stakers", type=int, default=5, help="Stakers to generate")
    init_parser.add_argument("--delegations", type=int, default=4, help="Delegations per staker")
    init_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    init_parser.add_argument("--no-seed", action="store_true", help="Only write the config")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run the API server")
    run_parser.add_argument("--config", default=None, help="Config file (default: <datadir>/config.yml)")
    run_parser.add_argument("--host", default=None, help="Override server host")
    run_parser.add_argument("--port", type=int, default=None, help="Override server port")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    if args.command == "init":
        cmd_init(args)
    elif args.command == "run":
        cmd_run(args)


if __name__ == "__main__":
    main()
