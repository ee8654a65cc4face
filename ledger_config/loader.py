"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads rate-set and settings YAML files and parses them into typed
``ledger_config.schema`` dataclass instances.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on the kernel,
engines or modules; ``ledger_config.bridges`` translates the parsed
artifacts into kernel values.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields never get silent defaults.
* Monetary values and rates become ``Decimal`` via their text form, so a
  YAML float such as ``0.1`` parses as ``Decimal("0.1")``.
* Every parsed object is a frozen dataclass from ``schema.py``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Bad dates, numbers or booleans  -> ``ValueError``.

Audit relevance
---------------
``compute_checksum`` identifies the exact rate-set document a set of
installed rate rows came from.
"""

from __future__ import annotations

import hashlib
import json
import os
from collections.abc import Mapping
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    HealthBracketDef,
    HousingLevyDef,
    LedgerSettings,
    RateTableSet,
    ReliefPolicyDef,
    SocialSecurityDef,
    TaxBandDef,
)

_ENV_PREFIX = "LEDGER_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """
    Parse a date from YAML (string or date object).

    Raises:
        ValueError: if ``value`` is not a valid date representation.
    """
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any, field_name: str = "value") -> Decimal:
    """Parse a YAML number or numeric string into a finite Decimal."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name}: expected a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{field_name}: not a number: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"{field_name}: not a finite number: {value!r}")
    return result


def _optional_decimal(value: Any, field_name: str) -> Decimal | None:
    return None if value is None else parse_decimal(value, field_name)


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"Cannot parse boolean from {value!r}")


def parse_tax_band(data: dict[str, Any]) -> TaxBandDef:
    """Parse a TaxBandDef from a dict."""
    return TaxBandDef(
        band_order=int(data["band_order"]),
        min_amount=parse_decimal(data["min_amount"], "min_amount"),
        max_amount=_optional_decimal(data.get("max_amount"), "max_amount"),
        rate=parse_decimal(data["rate"], "rate"),
        description=data.get("description", ""),
    )


def parse_health_bracket(data: dict[str, Any]) -> HealthBracketDef:
    """Parse a HealthBracketDef from a dict."""
    return HealthBracketDef(
        min_gross=parse_decimal(data["min_gross"], "min_gross"),
        max_gross=_optional_decimal(data.get("max_gross"), "max_gross"),
        contribution=parse_decimal(data["contribution"], "contribution"),
        description=data.get("description", ""),
    )


def parse_social_security(data: dict[str, Any]) -> SocialSecurityDef:
    """Parse a SocialSecurityDef from a dict."""
    return SocialSecurityDef(
        tier1_limit=parse_decimal(data["tier1_limit"], "tier1_limit"),
        tier1_rate=parse_decimal(data["tier1_rate"], "tier1_rate"),
        tier2_limit=parse_decimal(data["tier2_limit"], "tier2_limit"),
        tier2_rate=parse_decimal(data["tier2_rate"], "tier2_rate"),
        description=data.get("description", ""),
    )


def parse_relief_policy(data: dict[str, Any] | None) -> ReliefPolicyDef:
    """Parse a ReliefPolicyDef; absent keys keep the schema defaults."""
    if not data:
        return ReliefPolicyDef()
    values = {
        key: parse_decimal(data[key], key)
        for key in (
            "personal_relief",
            "insurance_rate",
            "insurance_cap",
            "pension_rate",
            "pension_cap",
            "mortgage_cap",
        )
        if key in data
    }
    return ReliefPolicyDef(**values)


def parse_rate_table_set(data: dict[str, Any]) -> RateTableSet:
    """
    Parse a complete RateTableSet from a rate-set document.

    Preconditions:
        - ``data`` has ``name``, ``tax_year``, ``effective_from``,
          ``tax_bands``, ``health_brackets``, ``social_security`` and
          ``housing_levy``.
    Postconditions:
        - Bands are ordered by band_order and brackets by min_gross.
        - ``checksum`` is the checksum of ``data``.
    Raises:
        KeyError: if required keys are missing.
        ValueError: on bad values, an empty band or bracket list, or a
            duplicated band_order.
    """
    bands = tuple(
        sorted((parse_tax_band(b) for b in data["tax_bands"]), key=lambda b: b.band_order)
    )
    if not bands:
        raise ValueError(f"Rate set {data.get('name')!r} has no tax_bands")
    orders = [b.band_order for b in bands]
    if len(set(orders)) != len(orders):
        raise ValueError(f"Rate set {data.get('name')!r} repeats a band_order")

    brackets = tuple(
        sorted(
            (parse_health_bracket(b) for b in data["health_brackets"]),
            key=lambda b: b.min_gross,
        )
    )
    if not brackets:
        raise ValueError(f"Rate set {data.get('name')!r} has no health_brackets")

    levy = data["housing_levy"]
    return RateTableSet(
        name=data["name"],
        jurisdiction=data.get("jurisdiction", ""),
        currency=data.get("currency", "KES"),
        tax_year=int(data["tax_year"]),
        effective_from=parse_date(data["effective_from"]),
        effective_to=parse_date(data["effective_to"]) if data.get("effective_to") else None,
        tax_bands=bands,
        health_brackets=brackets,
        social_security=parse_social_security(data["social_security"]),
        housing_levy=HousingLevyDef(
            rate=parse_decimal(levy["rate"], "housing_levy.rate"),
            description=levy.get("description", ""),
        ),
        reliefs=parse_relief_policy(data.get("reliefs")),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """
    Build LedgerSettings from an optional YAML file plus environment.

    Environment variables win over the file:
    LEDGER_DATABASE_URL, LEDGER_ECHO, LEDGER_LOG_LEVEL,
    LEDGER_DEFAULT_CURRENCY, LEDGER_RATE_SET.

    Raises:
        FileNotFoundError: ``path`` given but missing.
        ValueError: unparseable echo flag or log level.
    """
    env = os.environ if environ is None else environ
    data: dict[str, Any] = dict(load_yaml_file(path)) if path is not None else {}

    for key in ("database_url", "echo", "log_level", "default_currency", "rate_set"):
        env_value = env.get(_ENV_PREFIX + key.upper())
        if env_value is not None:
            data[key] = env_value

    defaults = LedgerSettings()
    log_level = str(data.get("log_level", defaults.log_level)).upper()
    if log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ValueError(f"Unknown log level: {log_level!r}")

    return LedgerSettings(
        database_url=str(data.get("database_url", defaults.database_url)),
        echo=parse_bool(data.get("echo", defaults.echo)),
        log_level=log_level,
        default_currency=str(data.get("default_currency", defaults.default_currency)).upper(),
        rate_set=str(data.get("rate_set", defaults.rate_set)),
    )
