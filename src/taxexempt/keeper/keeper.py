"""
Zone registry and membership index.

The Keeper owns two disjoint namespaces of one ordered store:

    0x01 | zone name  -> JSON encoded Zone
    0x02 | address    -> zone name

Every mutating method re-validates its own arguments (non-empty zone
name, address format, zone existence) even though callers are expected
to have passed the authority check already. Multi-record mutations run
inside a single store transaction, so a failure leaves nothing behind.
"""

import logging
from typing import Iterator

from taxexempt.address import validate_address
from taxexempt.errors import (
    AddressNotFoundError,
    AlreadyAssociatedError,
    EmptyZoneNameError,
    InvalidAddressError,
    ZoneNotFoundError,
)
from taxexempt.keeper.exemption import ABSENT, ResolvedZone, is_exempt
from taxexempt.keeper.pagination import filtered_paginate
from taxexempt.schema import DEFAULT_ADDRESS_PREFIX, PageRequest, PageResponse, Zone
from taxexempt.store import KVStore, PrefixStore

logger = logging.getLogger(__name__)

ZONE_PREFIX = b"\x01"
ADDRESS_PREFIX = b"\x02"


class Keeper:
    """
    Registry of exemption zones and their member addresses.

    Usage:
        keeper = Keeper(KVStore(":memory:"), authority="terra1...")
        keeper.add_zone(Zone(name="exchange", outgoing=True))
        keeper.add_address("exchange", "terra1...")
        keeper.is_exempted_from_tax("terra1...", None)

    Attributes:
        store: Backing ordered key-value store
        authority: Identity allowed to submit mutating messages
        address_prefix: bech32 prefix addresses must carry
    """

    def __init__(
        self,
        store: KVStore,
        authority: str = "",
        address_prefix: str = DEFAULT_ADDRESS_PREFIX,
    ) -> None:
        self.store = store
        self.authority = authority
        self.address_prefix = address_prefix
        self.zone_store = PrefixStore(store, ZONE_PREFIX)
        self.address_store = PrefixStore(store, ADDRESS_PREFIX)

    def transaction(self):
        """Open a store transaction spanning several keeper calls."""
        return self.store.transaction()

    # =========================================================================
    # Zone Registry
    # =========================================================================

    def add_zone(self, zone: Zone) -> None:
        """
        Register a zone, overwriting the flags of any zone with that name.

        Raises:
            EmptyZoneNameError: If the zone name is empty
        """
        if not zone.name:
            raise EmptyZoneNameError()
        self.zone_store.set(zone.name.encode(), zone.model_dump_json().encode())
        logger.debug("Stored zone %s", zone.name)

    def modify_zone(self, zone: Zone) -> None:
        """
        Update the flags of an existing zone. Never creates one.

        Raises:
            EmptyZoneNameError: If the zone name is empty
            ZoneNotFoundError: If no zone with that name exists
        """
        if not zone.name:
            raise EmptyZoneNameError()
        if not self.has_zone(zone.name):
            raise ZoneNotFoundError(zone=zone.name)
        self.zone_store.set(zone.name.encode(), zone.model_dump_json().encode())
        logger.debug("Modified zone %s", zone.name)

    def remove_zone(self, name: str) -> None:
        """
        Remove a zone together with every address that belongs to it.

        Raises:
            ZoneNotFoundError: If the zone does not exist
        """
        if not self.has_zone(name):
            raise ZoneNotFoundError(zone=name)

        removed = 0
        with self.store.transaction():
            self.zone_store.delete(name.encode())
            target = name.encode()
            for address, zone_name in self.address_store.iterator():
                if zone_name == target:
                    self.address_store.delete(address)
                    removed += 1

        logger.debug("Removed zone %s and %d member address(es)", name, removed)

    def get_zone(self, name: str) -> Zone:
        """
        Look up a zone by name.

        Raises:
            ZoneNotFoundError: If the zone does not exist
        """
        raw = self.zone_store.get(name.encode())
        if raw is None:
            raise ZoneNotFoundError(zone=name)
        return Zone.model_validate_json(raw)

    def has_zone(self, name: str) -> bool:
        return bool(name) and self.zone_store.has(name.encode())

    def iterate_zones(self) -> Iterator[Zone]:
        """Yield every zone in zone-name key order."""
        for _, value in self.zone_store.iterator():
            yield Zone.model_validate_json(value)

    # =========================================================================
    # Membership Index
    # =========================================================================

    def add_address(self, zone_name: str, address: str) -> None:
        """
        Associate ``address`` with ``zone_name``.

        Re-adding an address to its current zone is a no-op.

        Raises:
            ZoneNotFoundError: If the zone does not exist
            InvalidAddressError: If the address is malformed
            AlreadyAssociatedError: If the address belongs to another zone
        """
        if not self.has_zone(zone_name):
            raise ZoneNotFoundError(zone=zone_name)
        validate_address(address, self.address_prefix)

        current = self.get_address_zone(address)
        if current is not None:
            if current != zone_name:
                raise AlreadyAssociatedError(
                    address=address,
                    zone=zone_name,
                    current_zone=current,
                )
            return

        self.address_store.set(address.encode(), zone_name.encode())
        logger.debug("Added %s to zone %s", address, zone_name)

    def remove_address(self, zone_name: str, address: str) -> None:
        """
        Dissociate ``address`` from ``zone_name``.

        Only removes when the stored membership matches ``zone_name``.

        Raises:
            ZoneNotFoundError: If the zone does not exist
            AddressNotFoundError: If the address is malformed, has no
                membership, or belongs to a different zone
        """
        if not self.has_zone(zone_name):
            raise ZoneNotFoundError(zone=zone_name)
        try:
            validate_address(address, self.address_prefix)
        except InvalidAddressError as e:
            raise AddressNotFoundError(
                zone=zone_name,
                address=address,
                message=f"no such address in exemption list: {e.reason}",
            ) from e

        current = self.get_address_zone(address)
        if current != zone_name:
            raise AddressNotFoundError(zone=zone_name, address=address)

        self.address_store.delete(address.encode())
        logger.debug("Removed %s from zone %s", address, zone_name)

    def get_address_zone(self, address: str) -> str | None:
        """Return the zone name ``address`` belongs to, or None."""
        if not address:
            return None
        try:
            key = address.encode()
        except UnicodeEncodeError:
            return None
        raw = self.address_store.get(key)
        return None if raw is None else raw.decode()

    def iterate_memberships(self) -> Iterator[tuple[str, str]]:
        """Yield ``(address, zone_name)`` pairs in address key order."""
        for address, zone_name in self.address_store.iterator():
            yield address.decode(), zone_name.decode()

    def check_and_cache_zone(
        self,
        address: str | None,
        cache: dict[str, Zone],
    ) -> ResolvedZone:
        """
        Resolve ``address`` to its zone, memoizing zone reads in ``cache``.

        ``cache`` is owned by the caller and scoped to one operation; it
        maps zone name to Zone. An unspecified address, an address with no
        membership, or a membership whose zone record is gone all resolve
        to ABSENT.
        """
        zone_name = self.get_address_zone(address) if address else None
        if zone_name is None:
            return ABSENT

        zone = cache.get(zone_name)
        if zone is None:
            raw = self.zone_store.get(zone_name.encode())
            if raw is None:
                return ABSENT
            zone = Zone.model_validate_json(raw)
            cache[zone_name] = zone
        return ResolvedZone(zone)

    # =========================================================================
    # Exemption Decisions
    # =========================================================================

    def is_exempted_from_tax(self, sender: str | None, recipient: str | None) -> bool:
        """
        Decide whether a transfer from ``sender`` to ``recipient`` is exempt.

        Either side may be None when only one side of the transfer is
        known. Never raises for unknown or malformed addresses.
        """
        cache: dict[str, Zone] = {}
        return is_exempt(
            self.check_and_cache_zone(sender, cache),
            self.check_and_cache_zone(recipient, cache),
        )

    def is_taxable(self, sender: str | None, recipient: str | None) -> bool:
        """Negation of is_exempted_from_tax."""
        return not self.is_exempted_from_tax(sender, recipient)

    # =========================================================================
    # Listing
    # =========================================================================

    def list_zones(
        self,
        page_request: PageRequest | None = None,
    ) -> tuple[list[Zone], PageResponse]:
        """List zones in name order (descending if page_request.reverse)."""
        zones: list[Zone] = []

        def on_result(key: bytes, value: bytes, accumulate: bool) -> bool:
            if accumulate:
                zones.append(Zone.model_validate_json(value))
            return True

        page = filtered_paginate(self.zone_store, page_request, on_result)
        return zones, page

    def list_addresses(
        self,
        zone_name: str = "",
        page_request: PageRequest | None = None,
    ) -> tuple[list[str], PageResponse]:
        """
        List member addresses in address key order.

        Args:
            zone_name: Only list members of this zone (empty = all zones)
            page_request: Paging parameters
        """
        addresses: list[str] = []
        target = zone_name.encode()

        def on_result(key: bytes, value: bytes, accumulate: bool) -> bool:
            if zone_name and value != target:
                return False
            if accumulate:
                addresses.append(key.decode())
            return True

        page = filtered_paginate(self.address_store, page_request, on_result)
        return addresses, page
