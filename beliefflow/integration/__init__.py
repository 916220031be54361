"""Persistence of networks."""

from beliefflow.integration.serialization import (
    load_network,
    network_from_json,
    network_to_json,
    save_network,
)

__all__ = [
    "load_network",
    "network_from_json",
    "network_to_json",
    "save_network",
]
