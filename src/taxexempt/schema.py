"""
Schema definitions for taxexempt.

This module defines all the Pydantic models used throughout taxexempt:
- Zone/AddressesByZone/GenesisState: Registry state and its snapshot form
- PageRequest/PageResponse: Paged enumeration of ordered records
- Msg*: Mutating requests handled by the msg server
- Query*: Read-only requests handled by the querier
- Config: Module configuration (authority, address prefix, database)

Design Decisions:
    - Field names follow the snapshot JSON format (zone_list, cross_zone, ...)
    - Models are immutable where possible (frozen=True)
    - Unknown fields are rejected (extra="forbid")
"""

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field


DEFAULT_ADDRESS_PREFIX = "terra"
DEFAULT_DB_PATH = "taxexempt.db"


# =============================================================================
# Registry Models
# =============================================================================


class Zone(BaseModel):
    """
    A named group of addresses with transfer permissions.

    Attributes:
        name: Unique zone identifier
        outgoing: Members may send out of the zone without the levy
        incoming: Members may receive from outside the zone without the levy
        cross_zone: Directional flags also apply toward a different, present zone
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., description="Unique zone identifier")
    outgoing: bool = Field(default=False, description="Exempt outgoing transfers")
    incoming: bool = Field(default=False, description="Exempt incoming transfers")
    cross_zone: bool = Field(
        default=False,
        description="Directional flags count when the counterparty is in another zone",
    )


class AddressesByZone(BaseModel):
    """All addresses that belong to one zone, as stored in a genesis snapshot."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    zone: str = Field(..., description="Zone name")
    addresses: list[str] = Field(default_factory=list, description="Member addresses")


class GenesisState(BaseModel):
    """
    The complete exportable/importable registry state.

    Attributes:
        zone_list: Every registered zone, in zone-name order when exported
        addresses_by_zone: One address group per zone
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    zone_list: list[Zone] = Field(default_factory=list)
    addresses_by_zone: list[AddressesByZone] = Field(default_factory=list)


# =============================================================================
# Pagination Models
# =============================================================================


class PageRequest(BaseModel):
    """
    Paging parameters for list queries.

    Attributes:
        key: Opaque continuation cursor (next_key of a previous page)
        offset: Number of matching records to skip (exclusive with key)
        limit: Maximum records to return (0 = all remaining)
        count_total: Whether to report the total number of matching records
        reverse: Iterate in descending key order

    Negative offset or limit raise pydantic.ValidationError on construction.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    key: bytes | None = Field(default=None, description="Continuation cursor")
    offset: int = Field(default=0, ge=0, description="Records to skip")
    limit: int = Field(default=0, ge=0, description="Page size (0 = no limit)")
    count_total: bool = Field(default=False, description="Report total count")
    reverse: bool = Field(default=False, description="Descending order")


class PageResponse(BaseModel):
    """Continuation data returned alongside a page."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    next_key: bytes | None = Field(
        default=None,
        description="Key of the first record after this page, None at the end",
    )
    total: int | None = Field(
        default=None,
        description="Total matching records, if count_total was requested",
    )


# =============================================================================
# Messages
# =============================================================================


class MsgAddZone(BaseModel):
    """Register (or overwrite) a zone, optionally with initial members."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    authority: str
    zone: str
    outgoing: bool = False
    incoming: bool = False
    cross_zone: bool = False
    addresses: list[str] = Field(default_factory=list)

    def to_zone(self) -> Zone:
        """Build the Zone record carried by this message."""
        return Zone(
            name=self.zone,
            outgoing=self.outgoing,
            incoming=self.incoming,
            cross_zone=self.cross_zone,
        )


class MsgModifyZone(MsgAddZone):
    """Update the flags of an existing zone, optionally adding members."""


class MsgRemoveZone(BaseModel):
    """Remove a zone and every membership pointing at it."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    authority: str
    zone: str


class MsgAddAddress(BaseModel):
    """Associate a batch of addresses with a zone."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    authority: str
    zone: str
    addresses: list[str] = Field(default_factory=list)


class MsgRemoveAddress(MsgAddAddress):
    """Dissociate a batch of addresses from a zone."""


class MsgResponse(BaseModel):
    """Empty acknowledgement returned by every message handler."""

    model_config = ConfigDict(frozen=True, extra="forbid")


# =============================================================================
# Queries
# =============================================================================


class QueryTaxableRequest(BaseModel):
    """Either side may be None when only one side of a transfer is known."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    from_address: str | None = None
    to_address: str | None = None


class QueryTaxableResponse(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    taxable: bool


class QueryZonesRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    pagination: PageRequest | None = None


class QueryZonesResponse(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    zones: list[Zone] = Field(default_factory=list)
    pagination: PageResponse = Field(default_factory=PageResponse)


class QueryAddressesRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    zone_name: str = ""
    pagination: PageRequest | None = None


class QueryAddressesResponse(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    addresses: list[str] = Field(default_factory=list)
    pagination: PageResponse = Field(default_factory=PageResponse)


class QueryZoneRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str


class QueryZoneResponse(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    zone: Zone


# =============================================================================
# Configuration
# =============================================================================


class Config(BaseModel):
    """
    Module configuration.

    Attributes:
        authority: Identity allowed to submit mutating messages
        address_prefix: Human-readable bech32 prefix of valid addresses
        db_path: SQLite database file backing the store
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    authority: str = Field(default="", description="Module authority")
    address_prefix: str = Field(
        default=DEFAULT_ADDRESS_PREFIX,
        description="bech32 human-readable prefix",
        min_length=1,
    )
    db_path: str = Field(default=DEFAULT_DB_PATH, description="SQLite database path")


# =============================================================================
# File Loading Helpers
# =============================================================================


def _load_document(path: Path) -> Any:
    with path.open() as f:
        if path.suffix == ".json":
            return json.load(f)
        return yaml.safe_load(f)


def load_config(path: Path | str) -> Config:
    """
    Load configuration from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    data = _load_document(Path(path))
    return Config.model_validate(data or {})


def load_genesis(path: Path | str) -> GenesisState:
    """
    Load a genesis snapshot from a JSON or YAML file.

    The format is chosen by file suffix: ``.json`` is parsed as JSON,
    anything else as YAML.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the document doesn't match the schema
    """
    data = _load_document(Path(path))
    return GenesisState.model_validate(data or {})


def dump_genesis(state: GenesisState, fmt: str = "json") -> str:
    """Serialize a genesis snapshot as ``json`` or ``yaml`` text."""
    if fmt == "yaml":
        return yaml.safe_dump(state.model_dump(), sort_keys=False)
    return state.model_dump_json(indent=2)


def save_genesis(state: GenesisState, path: Path | str) -> None:
    """Write a genesis snapshot, choosing JSON or YAML by file suffix."""
    path = Path(path)
    fmt = "json" if path.suffix == ".json" else "yaml"
    path.write_text(dump_genesis(state, fmt))
