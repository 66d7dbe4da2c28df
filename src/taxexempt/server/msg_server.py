"""
Message handlers for mutating registry requests.

Each handler checks that the message was submitted by the configured
module authority, re-validates its arguments and applies the change in
one store transaction. A batch message that fails part-way (say, the
third address is already associated elsewhere) leaves no trace.
"""

import logging

from taxexempt.errors import EmptyZoneNameError, UnauthorizedError
from taxexempt.keeper import Keeper
from taxexempt.schema import (
    MsgAddAddress,
    MsgAddZone,
    MsgModifyZone,
    MsgRemoveAddress,
    MsgRemoveZone,
    MsgResponse,
)

logger = logging.getLogger(__name__)


class MsgServer:
    """
    Applies authority-gated messages to a Keeper.

    Usage:
        server = MsgServer(keeper)
        server.add_zone(MsgAddZone(authority=keeper.authority, zone="exchange"))
    """

    def __init__(self, keeper: Keeper) -> None:
        self.keeper = keeper

    def _check_authority(self, authority: str) -> None:
        if authority != self.keeper.authority:
            raise UnauthorizedError(expected=self.keeper.authority, actual=authority)

    @staticmethod
    def _check_zone_name(zone: str) -> None:
        if not zone:
            raise EmptyZoneNameError()

    def add_zone(self, msg: MsgAddZone) -> MsgResponse:
        """Register or overwrite a zone, then add its initial addresses."""
        self._check_authority(msg.authority)
        self._check_zone_name(msg.zone)

        with self.keeper.transaction():
            self.keeper.add_zone(msg.to_zone())
            for address in msg.addresses:
                self.keeper.add_address(msg.zone, address)

        logger.info("Added zone %s with %d address(es)", msg.zone, len(msg.addresses))
        return MsgResponse()

    def modify_zone(self, msg: MsgModifyZone) -> MsgResponse:
        """Update an existing zone's flags, then add any listed addresses."""
        self._check_authority(msg.authority)
        self._check_zone_name(msg.zone)

        with self.keeper.transaction():
            self.keeper.modify_zone(msg.to_zone())
            for address in msg.addresses:
                self.keeper.add_address(msg.zone, address)

        logger.info("Modified zone %s", msg.zone)
        return MsgResponse()

    def remove_zone(self, msg: MsgRemoveZone) -> MsgResponse:
        """Remove a zone and all of its memberships."""
        self._check_authority(msg.authority)
        self._check_zone_name(msg.zone)

        self.keeper.remove_zone(msg.zone)

        logger.info("Removed zone %s", msg.zone)
        return MsgResponse()

    def add_address(self, msg: MsgAddAddress) -> MsgResponse:
        """Associate every listed address with the zone."""
        self._check_authority(msg.authority)
        self._check_zone_name(msg.zone)

        with self.keeper.transaction():
            for address in msg.addresses:
                self.keeper.add_address(msg.zone, address)

        logger.info("Added %d address(es) to zone %s", len(msg.addresses), msg.zone)
        return MsgResponse()

    def remove_address(self, msg: MsgRemoveAddress) -> MsgResponse:
        """Dissociate every listed address from the zone."""
        self._check_authority(msg.authority)
        self._check_zone_name(msg.zone)

        with self.keeper.transaction():
            for address in msg.addresses:
                self.keeper.remove_address(msg.zone, address)

        logger.info("Removed %d address(es) from zone %s", len(msg.addresses), msg.zone)
        return MsgResponse()
