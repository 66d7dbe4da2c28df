"""
Genesis snapshot: validate, import and export the whole registry.

A genesis document holds every zone and one address group per zone:

    zone_list:          [Zone, ...]
    addresses_by_zone:  [{zone, addresses: [address, ...]}, ...]

Export walks the store in key order, so zones come out name-sorted and
each group's addresses address-sorted. An exported state that fails its
own validation means the store is already corrupt and is reported as a
StorageIntegrityError instead of a normal validation error.
"""

import logging

from taxexempt.address import validate_address
from taxexempt.errors import (
    GenesisError,
    InvalidAddressError,
    StorageIntegrityError,
    ZoneLengthInvalidError,
    ZoneNotExistError,
)
from taxexempt.keeper import Keeper
from taxexempt.schema import DEFAULT_ADDRESS_PREFIX, AddressesByZone, GenesisState

logger = logging.getLogger(__name__)


def default_genesis_state() -> GenesisState:
    """Return an empty genesis state."""
    return GenesisState(zone_list=[], addresses_by_zone=[])


def validate_genesis(
    state: GenesisState,
    address_prefix: str = DEFAULT_ADDRESS_PREFIX,
) -> None:
    """
    Check the structural invariants of a genesis state.

    The length check runs first; then, group by group, the zone must be
    listed and every address must be well-formed.

    Raises:
        ZoneLengthInvalidError: If zone_list and addresses_by_zone differ in length
        ZoneNotExistError: If a group references a zone not in zone_list
        InvalidAddressError: If any listed address is malformed
    """
    if len(state.zone_list) != len(state.addresses_by_zone):
        raise ZoneLengthInvalidError(
            zone_count=len(state.zone_list),
            group_count=len(state.addresses_by_zone),
        )

    zone_names = {zone.name for zone in state.zone_list}
    for group in state.addresses_by_zone:
        if group.zone not in zone_names:
            raise ZoneNotExistError(zone=group.zone)
        for address in group.addresses:
            validate_address(address, address_prefix)


def init_genesis(keeper: Keeper, state: GenesisState) -> None:
    """
    Load a genesis state into the keeper.

    The state is expected to be validated already. Zones are registered
    first (upsert), then every address is associated with its zone. The
    whole import is one transaction; the first error aborts it.
    """
    with keeper.transaction():
        for zone in state.zone_list:
            keeper.add_zone(zone)

        for group in state.addresses_by_zone:
            for address in group.addresses:
                keeper.add_address(group.zone, address)

    logger.info(
        "Imported genesis: %d zone(s), %d address(es)",
        len(state.zone_list),
        sum(len(group.addresses) for group in state.addresses_by_zone),
    )


def export_genesis(keeper: Keeper) -> GenesisState:
    """
    Rebuild a genesis state from the keeper's store.

    Raises:
        StorageIntegrityError: If the exported state fails validate_genesis
    """
    zones = list(keeper.iterate_zones())
    zone_addresses: dict[str, list[str]] = {zone.name: [] for zone in zones}

    for address, zone_name in keeper.iterate_memberships():
        if zone_name in zone_addresses:
            zone_addresses[zone_name].append(address)
        else:
            logger.warning("Skipping %s: zone %s is not registered", address, zone_name)

    state = GenesisState(
        zone_list=zones,
        addresses_by_zone=[
            AddressesByZone(zone=name, addresses=zone_addresses[name])
            for name in sorted(zone_addresses)
        ],
    )

    try:
        validate_genesis(state, keeper.address_prefix)
    except (GenesisError, InvalidAddressError) as e:
        raise StorageIntegrityError(
            operation="export_genesis",
            message=f"error validate genesis: {e.message}",
        ) from e

    return state
