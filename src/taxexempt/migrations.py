"""
Migration of the legacy flat exemption list.

Before zones existed, exemptions were a plain set of addresses and a
transfer was exempt only when both parties were in the set. Migrating
moves every such address into a single zone with all flags off, which
keeps exactly that behaviour: same-zone transfers are exempt, nothing
else is.
"""

import logging
from pathlib import Path
from typing import Iterable

import yaml

from taxexempt.keeper import Keeper
from taxexempt.schema import Zone

logger = logging.getLogger(__name__)

LEGACY_ZONE_NAME = "Binance"


def migrate_legacy_exemptions(
    keeper: Keeper,
    addresses: Iterable[str],
    zone_name: str = LEGACY_ZONE_NAME,
) -> int:
    """
    Move legacy exempt addresses into ``zone_name``.

    The zone is (re)created with all flags false. Runs as one
    transaction; any invalid or conflicting address aborts the migration.

    Returns:
        Number of addresses migrated
    """
    addresses = list(addresses)
    with keeper.transaction():
        keeper.add_zone(
            Zone(name=zone_name, outgoing=False, incoming=False, cross_zone=False)
        )
        for address in addresses:
            keeper.add_address(zone_name, address)

    logger.info("Migrated %d legacy exemption(s) into zone %s", len(addresses), zone_name)
    return len(addresses)


def load_legacy_addresses(path: Path | str) -> list[str]:
    """
    Read a legacy exemption list.

    Accepts either a YAML list of addresses or plain text with one
    address per line (blank lines and ``#`` comments ignored).
    """
    text = Path(path).read_text()
    data = yaml.safe_load(text)
    if isinstance(data, list):
        return [str(item).strip() for item in data]

    addresses = []
    for line in text.splitlines():
        line = line.split("#", 1)[0].strip()
        if line:
            addresses.append(line)
    return addresses
