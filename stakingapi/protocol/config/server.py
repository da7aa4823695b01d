# MIT License
# Copyright (c) 2025 Hashborn

"""
Server configuration.

Loaded from a YAML file with a `server` section, e.g.

    server:
      host: 127.0.0.1
      port: 8090
      btc-net: signet
      log-level: debug
"""

import ipaddress
import logging
import yaml
from pydantic import BaseModel, ConfigDict, Field
from typing import List
from .params import MAX_PAGINATION_LIMIT, NETWORKS, BTCNetParams, get_net_params

# Levels the server may run at, debug through critical
SUPPORTED_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class ServerConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    host: str = "127.0.0.1"
    port: int = 8090
    write_timeout: float = Field(default=60.0, alias="write-timeout")  # seconds
    read_timeout: float = Field(default=60.0, alias="read-timeout")
    idle_timeout: float = Field(default=60.0, alias="idle-timeout")
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"], alias="allowed-origins")
    log_level: str = Field(default="", alias="log-level")   # "" -> info
    btc_net: str = Field(default="signet", alias="btc-net")
    db_path: str = Field(default="./.stakingapi/staking.db", alias="db-path")
    max_page_size: int = Field(default=MAX_PAGINATION_LIMIT, alias="max-page-size")

    def validate_server(self) -> None:
        try:
            ipaddress.ip_address(self.host)
        except ValueError:
            raise ValueError(f"invalid host: {self.host}")

        if self.port < 0 or self.port > 65535:
            raise ValueError("invalid port")

        if self.write_timeout < 0:
            raise ValueError("write timeout cannot be negative")

        if self.read_timeout < 0:
            raise ValueError("read timeout cannot be negative")

        if self.idle_timeout < 0:
            raise ValueError("idle timeout cannot be negative")

        if self.btc_net not in NETWORKS:
            raise ValueError(f"unsupported BTC network: {self.btc_net}")

        if self.max_page_size <= 0:
            raise ValueError("max page size must be positive")

    def validate_log_level(self) -> None:
        # If log level is not set a default is used by the server
        if self.log_level == "":
            return
        if self.log_level.lower() not in SUPPORTED_LOG_LEVELS:
            raise ValueError(
                f"invalid log level: {self.log_level}, only levels from debug to critical are supported"
            )

    @property
    def logging_level(self) -> int:
        if not self.log_level:
            return logging.INFO
        return SUPPORTED_LOG_LEVELS[self.log_level.lower()]

    @property
    def btc_net_params(self) -> BTCNetParams:
        return get_net_params(self.btc_net)


class Config(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)

    def validate_all(self) -> None:
        self.server.validate_server()
        self.server.validate_log_level()

    @classmethod
    def load(cls, path: str) -> "Config":
        """Reads and validates a YAML config file."""
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}
        cfg = cls.model_validate(raw)
        cfg.validate_all()
        return cfg

    def dump(self, path: str) -> None:
        with open(path, "w") as f:
            yaml.safe_dump({"server": self.server.model_dump(by_alias=True)}, f, sort_keys=False)
