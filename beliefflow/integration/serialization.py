"""Network serialization and deserialization.

Provides :func:`save_network` and :func:`load_network` for persisting
:class:`~beliefflow.networks.dag.BayesianNetwork` instances to disk in
JSON format, plus the string-level :func:`network_to_json` and
:func:`network_from_json`.  The format includes a version field for
backward compatibility.

Layout::

    {
      "format_version": 1,
      "nodes": [
        {"id": "RAIN", "states": ["T", "F"], "parents": [],
         "cpt": {"T": 0.2, "F": 0.8}},
        {"id": "SPRINKLER", "states": ["T", "F"], "parents": ["RAIN"],
         "cpt": [{"when": {"RAIN": "T"}, "then": {"T": 0.01, "F": 0.99}}, ...]}
      ]
    }

Every loaded network goes through :class:`BayesianNetwork` validation
(acyclicity, parent references, CPT coverage and normalisation).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Union

from beliefflow.core.exceptions import NetworkValidationError
from beliefflow.networks.dag import BayesianNetwork

# Current serialization format version
FORMAT_VERSION = 1


# ------------------------------------------------------------------ #
#  Public API
# ------------------------------------------------------------------ #


def network_to_json(network: BayesianNetwork, indent: int = 2) -> str:
    """Return *network* as a JSON document."""
    if not isinstance(network, BayesianNetwork):
        raise TypeError(
            f"Expected BayesianNetwork, got {type(network).__name__}"
        )
    return json.dumps(_serialize_network(network), indent=indent, ensure_ascii=False)


def network_from_json(document: str) -> BayesianNetwork:
    """Rebuild a network from a document produced by :func:`network_to_json`.

    Raises
    ------
    ValueError
        If the document is not valid JSON, has an unsupported version or
        describes an invalid network.
    """
    try:
        payload = json.loads(document)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Corrupted network document: {exc}") from exc
    return _deserialize_network(payload)


def save_network(
    network: BayesianNetwork,
    filepath: Union[str, Path],
) -> None:
    """Export a :class:`BayesianNetwork` to a JSON file.

    Parameters
    ----------
    network : BayesianNetwork
        The network to serialize.
    filepath : str or Path
        Destination file path.  Parent directories must exist.

    Raises
    ------
    TypeError
        If *network* is not a :class:`BayesianNetwork`.
    """
    document = network_to_json(network)
    with open(Path(filepath), "w", encoding="utf-8") as fh:
        fh.write(document)


def load_network(
    filepath: Union[str, Path],
) -> BayesianNetwork:
    """Reconstruct a :class:`BayesianNetwork` from a JSON file.

    Raises
    ------
    FileNotFoundError
        If *filepath* does not exist.
    ValueError
        If the file is corrupted, has an unsupported version, or
        fails validation.
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Network file not found: {filepath}")

    with open(filepath, "r", encoding="utf-8") as fh:
        return network_from_json(fh.read())


# ------------------------------------------------------------------ #
#  Serialization helpers
# ------------------------------------------------------------------ #


def _serialize_network(network: BayesianNetwork) -> Dict[str, Any]:
    """Convert a BayesianNetwork to a JSON-serializable dictionary."""
    nodes_data: List[Dict[str, Any]] = []
    for node_id in network.nodes:
        nodes_data.append(network[node_id].to_dict())
    return {
        "format_version": FORMAT_VERSION,
        "nodes": nodes_data,
    }


def _deserialize_network(payload: Any) -> BayesianNetwork:
    """Reconstruct a BayesianNetwork from a deserialized dictionary."""
    if not isinstance(payload, dict):
        raise ValueError("Network document must be a JSON object")

    # ---- version check ------------------------------------------------ #
    version = payload.get("format_version")
    if version is None:
        raise ValueError("Missing 'format_version' in network document")
    if not isinstance(version, int) or version < 1:
        raise ValueError(f"Invalid format version {version!r}")
    if version > FORMAT_VERSION:
        raise ValueError(
            f"Unsupported format version {version} "
            f"(max supported: {FORMAT_VERSION})"
        )

    nodes_data = _migrate(payload, version)

    # ---- rebuild network ---------------------------------------------- #
    for index, entry in enumerate(nodes_data):
        if not isinstance(entry, dict) or "id" not in entry:
            raise ValueError(f"Node entry {index} is missing its 'id' field")
        for key in ("states", "cpt"):
            if key not in entry:
                raise ValueError(
                    f"Node '{entry['id']}' is missing its '{key}' field"
                )

    try:
        return BayesianNetwork.from_dict(nodes_data)
    except NetworkValidationError:
        raise
    except (TypeError, KeyError) as exc:
        raise ValueError(f"Malformed node entry: {exc}") from exc


# ------------------------------------------------------------------ #
#  Version migration
# ------------------------------------------------------------------ #


def _migrate(payload: Dict[str, Any], version: int) -> List[Dict[str, Any]]:
    """Apply version migrations to bring *payload* up to current format."""
    nodes_data = payload.get("nodes")
    if not isinstance(nodes_data, list):
        raise ValueError("Missing 'nodes' list in network document")

    # Version 1 is current; later versions add steps here.
    return nodes_data
