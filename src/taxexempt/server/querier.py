"""
Read-only query handlers.

Thin request/response shims over the Keeper. None of them mutate state.
"""

from taxexempt.errors import EmptyRequestError
from taxexempt.keeper import Keeper
from taxexempt.schema import (
    QueryAddressesRequest,
    QueryAddressesResponse,
    QueryTaxableRequest,
    QueryTaxableResponse,
    QueryZoneRequest,
    QueryZoneResponse,
    QueryZonesRequest,
    QueryZonesResponse,
)


class Querier:
    """Answers queries against a Keeper."""

    def __init__(self, keeper: Keeper) -> None:
        self.keeper = keeper

    def taxable(self, req: QueryTaxableRequest | None) -> QueryTaxableResponse:
        """Whether the levy applies to a transfer between the two addresses."""
        if req is None:
            raise EmptyRequestError()
        taxable = self.keeper.is_taxable(req.from_address, req.to_address)
        return QueryTaxableResponse(taxable=taxable)

    def zones(self, req: QueryZonesRequest | None) -> QueryZonesResponse:
        if req is None:
            raise EmptyRequestError()
        zones, page = self.keeper.list_zones(req.pagination)
        return QueryZonesResponse(zones=zones, pagination=page)

    def addresses(self, req: QueryAddressesRequest | None) -> QueryAddressesResponse:
        if req is None:
            raise EmptyRequestError()
        addresses, page = self.keeper.list_addresses(req.zone_name, req.pagination)
        return QueryAddressesResponse(addresses=addresses, pagination=page)

    def zone(self, req: QueryZoneRequest | None) -> QueryZoneResponse:
        if req is None:
            raise EmptyRequestError()
        return QueryZoneResponse(zone=self.keeper.get_zone(req.name))
