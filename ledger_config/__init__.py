"""
ledger_config -- statutory rate sets and runtime settings.

Responsibility:
    Locate the YAML rate sets shipped under ``ledger_config/sets/`` and
    return them parsed.  Runtime settings come from ``load_settings()``.

Architecture position:
    Configuration.  Sits above ``ledger_kernel``; the kernel never imports
    from here.  ``ledger_config.bridges`` converts the parsed artifacts into
    kernel values.

Failure modes:
    - ``FileNotFoundError`` -- no rate set with the requested name.
    - ``ValueError`` / ``KeyError`` -- malformed rate-set document.

Audit relevance:
    Every ``get_rate_set()`` call logs ``rate_set_loaded`` with the set's
    name, effective date and checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ledger_config.loader import load_settings, load_yaml_file, parse_rate_table_set
from ledger_config.schema import LedgerSettings, RateTableSet

_logger = logging.getLogger("ledger_kernel.config")

# Default rate sets directory
_DEFAULT_SETS_DIR = Path(__file__).parent / "sets"


def list_rate_sets(sets_dir: Path | None = None) -> list[str]:
    """Names of the available rate sets, sorted."""
    directory = sets_dir or _DEFAULT_SETS_DIR
    if not directory.is_dir():
        raise FileNotFoundError(f"Rate sets directory not found: {directory}")
    return sorted(p.stem for p in directory.glob("*.yaml"))


def get_rate_set(name: str, sets_dir: Path | None = None) -> RateTableSet:
    """
    Load and parse the rate set ``name``.

    Raises:
        FileNotFoundError: no ``<name>.yaml`` in the sets directory.
        ValueError, KeyError: the document does not parse.
    """
    path = (sets_dir or _DEFAULT_SETS_DIR) / f"{name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Rate set not found: {name!r} ({path})")

    rate_set = parse_rate_table_set(load_yaml_file(path))
    _logger.info(
        "rate_set_loaded",
        extra={
            "rate_set": rate_set.name,
            "effective_from": rate_set.effective_from.isoformat(),
            "tax_year": rate_set.tax_year,
            "checksum": rate_set.checksum,
        },
    )
    return rate_set


__all__ = [
    "LedgerSettings",
    "RateTableSet",
    "get_rate_set",
    "list_rate_sets",
    "load_settings",
]
