"""
Publisher configuration file (pn.json).

Lists every simulated node with its expanded node id so that an OPC
publisher can subscribe to all of them.
"""

from pathlib import Path
from typing import Iterable
import json

from ..logging import log_info
from ..types import NodeWithIntervals


def build_publisher_config(endpoint_url: str, use_security: bool,
                           nodes: Iterable[NodeWithIntervals]) -> list:
    """Build the pn.json document. Zero intervals are left out."""
    opc_nodes = []
    for node in nodes:
        entry = {"Id": node.expanded_node_id}
        if node.publishing_interval:
            entry["OpcPublishingInterval"] = node.publishing_interval
        if node.sampling_interval:
            entry["OpcSamplingInterval"] = node.sampling_interval
        opc_nodes.append(entry)

    return [
        {
            "EndpointUrl": endpoint_url,
            "UseSecurity": use_security,
            "OpcNodes": opc_nodes,
        }
    ]


def write_publisher_config(path: str, endpoint_url: str, use_security: bool,
                           nodes: Iterable[NodeWithIntervals]) -> None:
    """
    Write the pn.json file.

    Raises:
        OSError: If the file cannot be written
    """
    document = build_publisher_config(endpoint_url, use_security, nodes)
    target = Path(path)
    if target.parent and not target.parent.exists():
        target.parent.mkdir(parents=True, exist_ok=True)

    with open(target, 'w', encoding='utf-8') as f:
        json.dump(document, f, indent=2)

    log_info(f"Publisher configuration with {len(document[0]['OpcNodes'])} nodes written to {path}")
