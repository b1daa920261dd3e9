"""
approval_config -- single public entrypoint for approval configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains the
    routing table and deployment settings.  YAML parsing stays internal.

Failure modes:
    - ``FileNotFoundError`` -- the configuration set directory or its
      ``routing.yaml`` does not exist.
    - ``ConfigurationError`` subclasses -- malformed routing entries or a
      missing fallback chain.

Audit relevance:
    Every successful call emits an ``APPROVAL_CONFIG_TRACE`` log entry with
    the config id, routing checksum and route count, tying each routed
    request to the routing table version that chose its approvers.
"""

from __future__ import annotations

from pathlib import Path

from approval_config.loader import load_configuration
from approval_config.schema import ApprovalConfiguration
from approval_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
DEFAULT_SET = "default"


def get_active_config(
    config_dir: Path | None = None,
    set_name: str = DEFAULT_SET,
) -> ApprovalConfiguration:
    """Load and validate the active configuration set.

    Args:
        config_dir: Directory holding configuration sets.
            Defaults to approval_config/sets/.
        set_name: Subdirectory of ``config_dir`` to load.
    """
    set_dir = (config_dir or _DEFAULT_CONFIG_DIR) / set_name
    if not set_dir.is_dir():
        raise FileNotFoundError(f"Configuration set not found: {set_dir}")

    config = load_configuration(set_dir)

    _logger.info(
        "APPROVAL_CONFIG_TRACE",
        extra={
            "trace_type": "APPROVAL_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "checksum": config.checksum,
            "route_count": len(config.routing.routes),
            "fallback_length": len(config.routing.fallback),
        },
    )
    return config


__all__ = ["ApprovalConfiguration", "get_active_config"]
