"""
Integration tests for the message handlers.

Tests cover:
- Authority checks on every message
- Zone messages with initial addresses
- Batch address messages and their atomicity
"""

import logging

import pytest

from taxexempt.errors import (
    AddressNotFoundError,
    AlreadyAssociatedError,
    EmptyZoneNameError,
    InvalidAddressError,
    UnauthorizedError,
    ZoneNotFoundError,
)
from taxexempt.keeper import Keeper
from taxexempt.schema import (
    MsgAddAddress,
    MsgAddZone,
    MsgModifyZone,
    MsgRemoveAddress,
    MsgRemoveZone,
    MsgResponse,
    Zone,
)
from taxexempt.server import MsgServer


@pytest.fixture
def server(keeper: Keeper) -> MsgServer:
    return MsgServer(keeper)


class TestAuthority:
    """Every handler rejects messages not signed by the authority."""

    @pytest.mark.parametrize(
        "msg",
        [
            MsgAddZone(authority="mallory", zone="a"),
            MsgModifyZone(authority="mallory", zone="a"),
            MsgRemoveZone(authority="mallory", zone="a"),
            MsgAddAddress(authority="mallory", zone="a", addresses=[]),
            MsgRemoveAddress(authority="mallory", zone="a", addresses=[]),
        ],
    )
    def test_wrong_authority(self, server: MsgServer, keeper: Keeper, msg) -> None:
        keeper.add_zone(Zone(name="a"))
        handler = {
            MsgAddZone: server.add_zone,
            MsgModifyZone: server.modify_zone,
            MsgRemoveZone: server.remove_zone,
            MsgAddAddress: server.add_address,
            MsgRemoveAddress: server.remove_address,
        }[type(msg)]

        with pytest.raises(UnauthorizedError) as exc_info:
            handler(msg)
        assert exc_info.value.actual == "mallory"
        assert exc_info.value.expected == keeper.authority
        assert keeper.has_zone("a")

    def test_authority_checked_before_arguments(self, server: MsgServer) -> None:
        with pytest.raises(UnauthorizedError):
            server.add_zone(MsgAddZone(authority="mallory", zone=""))


class TestZoneMessages:
    """Tests for add/modify/remove zone messages."""

    def test_add_zone_with_addresses(self, server: MsgServer, keeper: Keeper, authority: str, addr) -> None:
        response = server.add_zone(
            MsgAddZone(
                authority=authority,
                zone="exchange",
                outgoing=True,
                cross_zone=True,
                addresses=[addr("1"), addr("2")],
            )
        )
        assert response == MsgResponse()
        assert keeper.get_zone("exchange") == Zone(name="exchange", outgoing=True, cross_zone=True)
        assert keeper.get_address_zone(addr("1")) == "exchange"
        assert keeper.get_address_zone(addr("2")) == "exchange"

    def test_add_zone_empty_name(self, server: MsgServer, authority: str) -> None:
        with pytest.raises(EmptyZoneNameError):
            server.add_zone(MsgAddZone(authority=authority, zone=""))

    def test_add_zone_rolls_back_on_bad_address(self, server: MsgServer, keeper: Keeper, authority: str, addr) -> None:
        with pytest.raises(InvalidAddressError):
            server.add_zone(
                MsgAddZone(authority=authority, zone="exchange", addresses=[addr("1"), "garbage"])
            )
        assert not keeper.has_zone("exchange")
        assert keeper.get_address_zone(addr("1")) is None

    def test_modify_zone(self, server: MsgServer, keeper: Keeper, authority: str, addr) -> None:
        keeper.add_zone(Zone(name="exchange"))
        server.modify_zone(
            MsgModifyZone(authority=authority, zone="exchange", incoming=True, addresses=[addr("1")])
        )
        assert keeper.get_zone("exchange").incoming is True
        assert keeper.get_address_zone(addr("1")) == "exchange"

    def test_modify_missing_zone(self, server: MsgServer, keeper: Keeper, authority: str) -> None:
        with pytest.raises(ZoneNotFoundError):
            server.modify_zone(MsgModifyZone(authority=authority, zone="exchange"))
        assert not keeper.has_zone("exchange")

    def test_remove_zone(self, server: MsgServer, keeper: Keeper, authority: str, addr) -> None:
        keeper.add_zone(Zone(name="exchange"))
        keeper.add_address("exchange", addr("1"))
        server.remove_zone(MsgRemoveZone(authority=authority, zone="exchange"))
        assert not keeper.has_zone("exchange")
        assert keeper.get_address_zone(addr("1")) is None

    def test_remove_zone_empty_name(self, server: MsgServer, authority: str) -> None:
        with pytest.raises(EmptyZoneNameError):
            server.remove_zone(MsgRemoveZone(authority=authority, zone=""))

    def test_logs_applied_change(self, server: MsgServer, authority: str, caplog) -> None:
        with caplog.at_level(logging.INFO, logger="taxexempt.server.msg_server"):
            server.add_zone(MsgAddZone(authority=authority, zone="exchange"))
        assert "Added zone exchange" in caplog.text


class TestAddressMessages:
    """Tests for batch address messages."""

    @pytest.fixture(autouse=True)
    def zones(self, keeper: Keeper) -> None:
        keeper.add_zone(Zone(name="a"))
        keeper.add_zone(Zone(name="b"))

    def test_add_batch(self, server: MsgServer, keeper: Keeper, authority: str, addr) -> None:
        server.add_address(MsgAddAddress(authority=authority, zone="a", addresses=[addr("1"), addr("2")]))
        assert [z for _, z in keeper.iterate_memberships()] == ["a", "a"]

    def test_add_batch_is_atomic(self, server: MsgServer, keeper: Keeper, authority: str, addr) -> None:
        keeper.add_address("b", addr("3"))
        with pytest.raises(AlreadyAssociatedError):
            server.add_address(
                MsgAddAddress(authority=authority, zone="a", addresses=[addr("1"), addr("2"), addr("3")])
            )
        assert keeper.get_address_zone(addr("1")) is None
        assert keeper.get_address_zone(addr("2")) is None
        assert keeper.get_address_zone(addr("3")) == "b"

    def test_add_to_missing_zone(self, server: MsgServer, authority: str, addr) -> None:
        with pytest.raises(ZoneNotFoundError):
            server.add_address(MsgAddAddress(authority=authority, zone="nope", addresses=[addr("1")]))

    def test_remove_batch(self, server: MsgServer, keeper: Keeper, authority: str, addr) -> None:
        keeper.add_address("a", addr("1"))
        keeper.add_address("a", addr("2"))
        server.remove_address(
            MsgRemoveAddress(authority=authority, zone="a", addresses=[addr("1"), addr("2")])
        )
        assert list(keeper.iterate_memberships()) == []

    def test_remove_batch_is_atomic(self, server: MsgServer, keeper: Keeper, authority: str, addr) -> None:
        keeper.add_address("a", addr("1"))
        keeper.add_address("b", addr("2"))
        with pytest.raises(AddressNotFoundError):
            server.remove_address(
                MsgRemoveAddress(authority=authority, zone="a", addresses=[addr("1"), addr("2")])
            )
        assert keeper.get_address_zone(addr("1")) == "a"
        assert keeper.get_address_zone(addr("2")) == "b"

    def test_empty_zone_name(self, server: MsgServer, authority: str, addr) -> None:
        with pytest.raises(EmptyZoneNameError):
            server.add_address(MsgAddAddress(authority=authority, zone="", addresses=[addr("1")]))
