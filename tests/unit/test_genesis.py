"""
Unit tests for genesis snapshots.

Tests cover:
- Validation rules and their order
- Import/export round trip
- Export ordering and empty groups
- Integrity failures on export
- File loading and saving
"""

from pathlib import Path

import pytest

from taxexempt.errors import (
    AlreadyAssociatedError,
    InvalidAddressError,
    StorageIntegrityError,
    ZoneLengthInvalidError,
    ZoneNotExistError,
)
from taxexempt.genesis import default_genesis_state, export_genesis, init_genesis, validate_genesis
from taxexempt.keeper import Keeper
from taxexempt.schema import AddressesByZone, GenesisState, Zone, load_genesis, save_genesis
from taxexempt.store import KVStore


# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def sample_state(addr) -> GenesisState:
    return GenesisState(
        zone_list=[
            Zone(name="exchange", outgoing=True, cross_zone=True),
            Zone(name="bridge", incoming=True),
            Zone(name="empty"),
        ],
        addresses_by_zone=[
            AddressesByZone(zone="exchange", addresses=[addr("x1"), addr("x2")]),
            AddressesByZone(zone="bridge", addresses=[addr("b1")]),
            AddressesByZone(zone="empty", addresses=[]),
        ],
    )


# =============================================================================
# Validation Tests
# =============================================================================


class TestValidateGenesis:
    """Tests for validate_genesis."""

    def test_default_is_valid(self) -> None:
        state = default_genesis_state()
        assert state.zone_list == []
        assert state.addresses_by_zone == []
        validate_genesis(state)

    def test_sample_is_valid(self, sample_state: GenesisState) -> None:
        validate_genesis(sample_state)

    def test_length_mismatch(self) -> None:
        state = GenesisState(zone_list=[Zone(name="a")], addresses_by_zone=[])
        with pytest.raises(ZoneLengthInvalidError) as exc_info:
            validate_genesis(state)
        assert exc_info.value.zone_count == 1
        assert exc_info.value.group_count == 0

    def test_length_checked_first(self) -> None:
        state = GenesisState(
            zone_list=[],
            addresses_by_zone=[AddressesByZone(zone="ghost", addresses=["garbage"])],
        )
        with pytest.raises(ZoneLengthInvalidError):
            validate_genesis(state)

    def test_unlisted_zone(self, addr) -> None:
        state = GenesisState(
            zone_list=[Zone(name="a")],
            addresses_by_zone=[AddressesByZone(zone="ghost", addresses=[addr("1")])],
        )
        with pytest.raises(ZoneNotExistError) as exc_info:
            validate_genesis(state)
        assert exc_info.value.zone == "ghost"

    def test_malformed_address(self) -> None:
        state = GenesisState(
            zone_list=[Zone(name="a")],
            addresses_by_zone=[AddressesByZone(zone="a", addresses=["garbage"])],
        )
        with pytest.raises(InvalidAddressError):
            validate_genesis(state)

    def test_prefix_is_respected(self, addr) -> None:
        state = GenesisState(
            zone_list=[Zone(name="a")],
            addresses_by_zone=[AddressesByZone(zone="a", addresses=[addr("1", prefix="cosmos")])],
        )
        validate_genesis(state, address_prefix="cosmos")
        with pytest.raises(InvalidAddressError):
            validate_genesis(state)


# =============================================================================
# Import / Export Tests
# =============================================================================


class TestImportExport:
    """Tests for init_genesis and export_genesis."""

    def test_round_trip(self, keeper: Keeper, sample_state: GenesisState) -> None:
        init_genesis(keeper, sample_state)
        exported = export_genesis(keeper)

        assert sorted(z.name for z in exported.zone_list) == ["bridge", "empty", "exchange"]
        expected = {g.zone: sorted(g.addresses) for g in sample_state.addresses_by_zone}
        actual = {g.zone: g.addresses for g in exported.addresses_by_zone}
        assert actual == expected
        assert {z.name: z for z in exported.zone_list} == {
            z.name: z for z in sample_state.zone_list
        }

    def test_export_is_sorted(self, keeper: Keeper, sample_state: GenesisState) -> None:
        init_genesis(keeper, sample_state)
        exported = export_genesis(keeper)
        assert [z.name for z in exported.zone_list] == ["bridge", "empty", "exchange"]
        assert [g.zone for g in exported.addresses_by_zone] == ["bridge", "empty", "exchange"]
        for group in exported.addresses_by_zone:
            assert group.addresses == sorted(group.addresses)

    def test_export_round_trips_again(self, keeper: Keeper, sample_state: GenesisState) -> None:
        init_genesis(keeper, sample_state)
        first = export_genesis(keeper)

        other = Keeper(KVStore(":memory:"))
        init_genesis(other, first)
        assert export_genesis(other) == first

    def test_empty_export(self, keeper: Keeper) -> None:
        assert export_genesis(keeper) == default_genesis_state()

    def test_import_upserts_existing_zone(self, keeper: Keeper, sample_state: GenesisState) -> None:
        keeper.add_zone(Zone(name="bridge", outgoing=True))
        init_genesis(keeper, sample_state)
        assert keeper.get_zone("bridge") == Zone(name="bridge", incoming=True)

    def test_import_is_atomic(self, keeper: Keeper, addr) -> None:
        state = GenesisState(
            zone_list=[Zone(name="a"), Zone(name="b")],
            addresses_by_zone=[
                AddressesByZone(zone="a", addresses=[addr("1")]),
                AddressesByZone(zone="b", addresses=[addr("1")]),
            ],
        )
        with pytest.raises(AlreadyAssociatedError):
            init_genesis(keeper, state)
        assert list(keeper.iterate_zones()) == []
        assert list(keeper.iterate_memberships()) == []

    def test_dangling_membership_is_skipped(self, keeper: Keeper, addr) -> None:
        keeper.add_zone(Zone(name="a"))
        keeper.add_zone(Zone(name="b"))
        keeper.add_address("a", addr("1"))
        keeper.add_address("b", addr("2"))
        keeper.zone_store.delete(b"b")

        exported = export_genesis(keeper)
        assert [z.name for z in exported.zone_list] == ["a"]
        assert exported.addresses_by_zone == [AddressesByZone(zone="a", addresses=[addr("1")])]

    def test_corrupt_store_raises_integrity_error(self, keeper: Keeper) -> None:
        keeper.add_zone(Zone(name="a"))
        keeper.address_store.set(b"garbage", b"a")

        with pytest.raises(StorageIntegrityError) as exc_info:
            export_genesis(keeper)
        assert exc_info.value.message.startswith("error validate genesis")
        assert isinstance(exc_info.value.__cause__, InvalidAddressError)


# =============================================================================
# File Tests
# =============================================================================


class TestGenesisFiles:
    """Tests for load_genesis and save_genesis."""

    @pytest.mark.parametrize("filename", ["genesis.json", "genesis.yaml"])
    def test_save_and_load(self, temp_dir: Path, sample_state: GenesisState, filename: str) -> None:
        path = temp_dir / filename
        save_genesis(sample_state, path)
        assert load_genesis(path) == sample_state

    def test_json_on_disk_uses_snake_case(self, temp_dir: Path, sample_state: GenesisState) -> None:
        path = temp_dir / "genesis.json"
        save_genesis(sample_state, path)
        text = path.read_text()
        assert '"zone_list"' in text
        assert '"cross_zone"' in text

    def test_empty_yaml_is_default(self, temp_dir: Path) -> None:
        path = temp_dir / "genesis.yaml"
        path.write_text("")
        assert load_genesis(path) == default_genesis_state()
