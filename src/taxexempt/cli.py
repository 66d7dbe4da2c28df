"""
CLI entry point for taxexempt.

This module provides the Typer-based command-line interface over the
registry. All commands open the configured SQLite store, build a Keeper
and delegate to the query/message handlers.

Commands:
    query taxable     Whether a transfer between two addresses is taxed
    query zones       List registered zones
    query addresses   List member addresses (optionally of one zone)
    query zone        Show one zone
    tx add-zone       Register or overwrite a zone
    tx modify-zone    Update an existing zone
    tx remove-zone    Remove a zone and its memberships
    tx add-address    Add addresses to a zone
    tx remove-address Remove addresses from a zone
    genesis validate  Validate a genesis file
    genesis import    Validate and load a genesis file
    genesis export    Export the registry as a genesis document
    migrate-legacy    Move a legacy exemption list into one zone

Architecture Note:
    Commands only parse options, open the store and call MsgServer,
    Querier or the genesis/migration functions. Nothing here touches
    the store directly.
"""

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Any, Generator, List, Optional

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from taxexempt import __version__
from taxexempt.errors import TaxExemptError
from taxexempt.genesis import export_genesis, init_genesis, validate_genesis
from taxexempt.keeper import Keeper
from taxexempt.migrations import LEGACY_ZONE_NAME, load_legacy_addresses, migrate_legacy_exemptions
from taxexempt.schema import (
    Config,
    MsgAddAddress,
    MsgAddZone,
    MsgModifyZone,
    MsgRemoveAddress,
    MsgRemoveZone,
    PageRequest,
    PageResponse,
    QueryAddressesRequest,
    QueryTaxableRequest,
    QueryZoneRequest,
    QueryZonesRequest,
    Zone,
    dump_genesis,
    load_config,
    load_genesis,
    save_genesis,
)
from taxexempt.server import MsgServer, Querier
from taxexempt.store import KVStore

app = typer.Typer(
    name="taxexempt",
    help="Zone-based tax exemption registry.",
    add_completion=False,
    no_args_is_help=True,
)
query_app = typer.Typer(
    help="Querying commands for the taxexempt registry.",
    no_args_is_help=True,
)
tx_app = typer.Typer(
    help="Authority-gated registry changes.",
    no_args_is_help=True,
)
genesis_app = typer.Typer(
    help="Genesis snapshot commands.",
    no_args_is_help=True,
)
app.add_typer(query_app, name="query")
app.add_typer(tx_app, name="tx")
app.add_typer(genesis_app, name="genesis")

# Rich console for formatted output
console = Console()


# =============================================================================
# Shared Options
# =============================================================================

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="Path to the YAML config file.",
        envvar="TAXEXEMPT_CONFIG",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]
DbOption = Annotated[
    Optional[Path],
    typer.Option(
        "--db",
        help="Path to the SQLite database. Overrides db_path from the config.",
        resolve_path=True,
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", help="Enable debug logging."),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output results in JSON format."),
]
AuthorityOption = Annotated[
    Optional[str],
    typer.Option(
        "--authority",
        help="Identity submitting the change. Defaults to the configured authority.",
    ),
]
LimitOption = Annotated[
    int,
    typer.Option("--limit", min=0, help="Maximum records to return (0 = all)."),
]
OffsetOption = Annotated[
    int,
    typer.Option("--offset", min=0, help="Number of records to skip."),
]
PageOption = Annotated[
    int,
    typer.Option("--page", min=1, help="Page number; sets offset to (page - 1) * limit."),
]
PageKeyOption = Annotated[
    Optional[str],
    typer.Option("--page-key", help="Hex continuation key from a previous page."),
]
ReverseOption = Annotated[
    bool,
    typer.Option("--reverse", help="List in descending order."),
]
CountTotalOption = Annotated[
    bool,
    typer.Option("--count-total", help="Report the total number of records."),
]


# =============================================================================
# Helpers
# =============================================================================


def _configure_logging(verbose: bool) -> None:
    """Route package logs through rich; DEBUG with --verbose, else WARNING."""
    logger = logging.getLogger("taxexempt")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    # Avoid duplicate handlers
    if not logger.handlers:
        logger.addHandler(RichHandler(console=console, show_path=False))


def _settings(config_path: Optional[Path], db: Optional[Path]) -> Config:
    """Load the config file (if any) and apply command-line overrides."""
    try:
        config = load_config(config_path) if config_path else Config()
    except (OSError, yaml.YAMLError, ValidationError) as e:
        console.print(f"[red]Error loading config: {escape(str(e))}[/red]", soft_wrap=True)
        raise typer.Exit(code=1)
    if db is not None:
        config = config.model_copy(update={"db_path": str(db)})
    return config


@contextmanager
def _open_keeper(config: Config, must_exist: bool = False) -> Generator[Keeper, None, None]:
    """Open the configured store and yield a Keeper over it."""
    if must_exist and not Path(config.db_path).exists():
        console.print(f"[yellow]No database found at {config.db_path}[/yellow]")
        raise typer.Exit(code=1)
    with KVStore(config.db_path) as store:
        yield Keeper(
            store,
            authority=config.authority,
            address_prefix=config.address_prefix,
        )


def _fail(error: Exception, json_output: bool = False) -> None:
    """Report an error and exit with status 1."""
    if json_output:
        if isinstance(error, TaxExemptError):
            output = {"error": True, **error.to_dict()}
        else:
            output = {
                "error": True,
                "error_type": error.__class__.__name__,
                "message": str(error),
            }
        print(json.dumps(output, indent=2, default=str))
    else:
        console.print(f"[red]Error: {escape(str(error))}[/red]", soft_wrap=True)
    raise typer.Exit(code=1)


def _page_request(
    limit: int,
    offset: int,
    page: int,
    page_key: Optional[str],
    reverse: bool,
    count_total: bool,
) -> PageRequest:
    if page > 1:
        if offset:
            raise typer.BadParameter("--page and --offset cannot be used together")
        if not limit:
            raise typer.BadParameter("--page requires a non-zero --limit")
        offset = (page - 1) * limit
    try:
        key = bytes.fromhex(page_key) if page_key else None
    except ValueError as e:
        raise typer.BadParameter(f"--page-key must be hex: {e}") from e
    return PageRequest(
        key=key,
        offset=offset,
        limit=limit,
        reverse=reverse,
        count_total=count_total,
    )


def _page_json(page: PageResponse) -> dict[str, Any]:
    return {
        "next_key": page.next_key.hex() if page.next_key else None,
        "total": page.total,
    }


def _print_page_footer(page: PageResponse) -> None:
    if page.next_key:
        console.print(f"[dim]Next page key: {page.next_key.hex()}[/dim]")
    if page.total is not None:
        console.print(f"[dim]Total: {page.total}[/dim]")


def _flag(value: bool) -> str:
    return "[green]yes[/green]" if value else "[dim]no[/dim]"


def _zone_table(zones: list[Zone]) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Zone", style="cyan")
    table.add_column("Outgoing", justify="center")
    table.add_column("Incoming", justify="center")
    table.add_column("Cross-zone", justify="center")
    for zone in zones:
        table.add_row(
            zone.name,
            _flag(zone.outgoing),
            _flag(zone.incoming),
            _flag(zone.cross_zone),
        )
    return table


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]taxexempt[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    taxexempt - Zone-based tax exemption registry.

    Decide whether transfers between addresses are exempt from the levy,
    and manage the zones and memberships the decision is based on.
    """
    pass


# =============================================================================
# Queries
# =============================================================================


@query_app.command("taxable")
def query_taxable(
    from_address: Annotated[
        str,
        typer.Argument(help='Sender address ("" if unknown).'),
    ],
    to_address: Annotated[
        str,
        typer.Argument(help='Recipient address ("" if unknown).'),
    ],
    config: ConfigOption = None,
    db: DbOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
) -> None:
    """
    Check whether the levy applies to a transfer.

    Example:
        $ taxexempt query taxable terra1sender... terra1recipient...
    """
    _configure_logging(verbose)
    settings = _settings(config, db)

    with _open_keeper(settings, must_exist=True) as keeper:
        response = Querier(keeper).taxable(
            QueryTaxableRequest(
                from_address=from_address or None,
                to_address=to_address or None,
            )
        )

    if json_output:
        print(json.dumps({"taxable": response.taxable}, indent=2))
    elif response.taxable:
        console.print("[yellow]taxable[/yellow]")
    else:
        console.print("[green]exempt[/green]")


@query_app.command("zones")
def query_zones(
    limit: LimitOption = 0,
    offset: OffsetOption = 0,
    page: PageOption = 1,
    page_key: PageKeyOption = None,
    reverse: ReverseOption = False,
    count_total: CountTotalOption = False,
    config: ConfigOption = None,
    db: DbOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
) -> None:
    """
    List registered zones.

    Example:
        $ taxexempt query zones --limit 10 --count-total
    """
    _configure_logging(verbose)
    settings = _settings(config, db)
    page_request = _page_request(limit, offset, page, page_key, reverse, count_total)

    with _open_keeper(settings, must_exist=True) as keeper:
        try:
            response = Querier(keeper).zones(QueryZonesRequest(pagination=page_request))
        except TaxExemptError as e:
            _fail(e, json_output)

    if json_output:
        output = {
            "zones": [zone.model_dump() for zone in response.zones],
            "pagination": _page_json(response.pagination),
        }
        print(json.dumps(output, indent=2))
        return

    if not response.zones:
        console.print("[dim]No zones found.[/dim]")
    else:
        console.print(_zone_table(response.zones))
    _print_page_footer(response.pagination)


@query_app.command("addresses")
def query_addresses(
    zone: Annotated[
        str,
        typer.Argument(help="Only list members of this zone (default: all zones)."),
    ] = "",
    limit: LimitOption = 0,
    offset: OffsetOption = 0,
    page: PageOption = 1,
    page_key: PageKeyOption = None,
    reverse: ReverseOption = False,
    count_total: CountTotalOption = False,
    config: ConfigOption = None,
    db: DbOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
) -> None:
    """
    List exempt addresses.

    Example:
        $ taxexempt query addresses exchange --limit 50
    """
    _configure_logging(verbose)
    settings = _settings(config, db)
    page_request = _page_request(limit, offset, page, page_key, reverse, count_total)

    with _open_keeper(settings, must_exist=True) as keeper:
        try:
            response = Querier(keeper).addresses(
                QueryAddressesRequest(zone_name=zone, pagination=page_request)
            )
        except TaxExemptError as e:
            _fail(e, json_output)

    if json_output:
        output = {
            "addresses": response.addresses,
            "pagination": _page_json(response.pagination),
        }
        print(json.dumps(output, indent=2))
        return

    if not response.addresses:
        console.print("[dim]No addresses found.[/dim]")
    for address in response.addresses:
        console.print(address)
    _print_page_footer(response.pagination)


@query_app.command("zone")
def query_zone(
    name: Annotated[str, typer.Argument(help="Zone name.")],
    config: ConfigOption = None,
    db: DbOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
) -> None:
    """Show a single zone."""
    _configure_logging(verbose)
    settings = _settings(config, db)

    with _open_keeper(settings, must_exist=True) as keeper:
        try:
            response = Querier(keeper).zone(QueryZoneRequest(name=name))
        except TaxExemptError as e:
            _fail(e, json_output)

    if json_output:
        print(json.dumps(response.zone.model_dump(), indent=2))
    else:
        console.print(_zone_table([response.zone]))


# =============================================================================
# Transactions
# =============================================================================


@tx_app.command("add-zone")
def tx_add_zone(
    name: Annotated[str, typer.Argument(help="Zone name.")],
    outgoing: Annotated[bool, typer.Option("--outgoing", help="Exempt outgoing transfers.")] = False,
    incoming: Annotated[bool, typer.Option("--incoming", help="Exempt incoming transfers.")] = False,
    cross_zone: Annotated[
        bool,
        typer.Option("--cross-zone", help="Apply directional flags toward other zones."),
    ] = False,
    addresses: Annotated[
        Optional[List[str]],
        typer.Option("--address", "-a", help="Member address (repeatable)."),
    ] = None,
    authority: AuthorityOption = None,
    config: ConfigOption = None,
    db: DbOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Register a zone, overwriting the flags of an existing one.

    Example:
        $ taxexempt tx add-zone exchange --outgoing --cross-zone -a terra1...
    """
    _configure_logging(verbose)
    settings = _settings(config, db)

    try:
        msg = MsgAddZone(
            authority=settings.authority if authority is None else authority,
            zone=name,
            outgoing=outgoing,
            incoming=incoming,
            cross_zone=cross_zone,
            addresses=addresses or [],
        )
        with _open_keeper(settings) as keeper:
            MsgServer(keeper).add_zone(msg)
    except TaxExemptError as e:
        _fail(e)

    console.print(f"[green]✓[/green] Zone [bold]{name}[/bold] saved")


@tx_app.command("modify-zone")
def tx_modify_zone(
    name: Annotated[str, typer.Argument(help="Zone name.")],
    outgoing: Annotated[bool, typer.Option("--outgoing", help="Exempt outgoing transfers.")] = False,
    incoming: Annotated[bool, typer.Option("--incoming", help="Exempt incoming transfers.")] = False,
    cross_zone: Annotated[
        bool,
        typer.Option("--cross-zone", help="Apply directional flags toward other zones."),
    ] = False,
    addresses: Annotated[
        Optional[List[str]],
        typer.Option("--address", "-a", help="Member address to add (repeatable)."),
    ] = None,
    authority: AuthorityOption = None,
    config: ConfigOption = None,
    db: DbOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Replace the flags of an existing zone. Fails if the zone is unknown."""
    _configure_logging(verbose)
    settings = _settings(config, db)

    try:
        msg = MsgModifyZone(
            authority=settings.authority if authority is None else authority,
            zone=name,
            outgoing=outgoing,
            incoming=incoming,
            cross_zone=cross_zone,
            addresses=addresses or [],
        )
        with _open_keeper(settings) as keeper:
            MsgServer(keeper).modify_zone(msg)
    except TaxExemptError as e:
        _fail(e)

    console.print(f"[green]✓[/green] Zone [bold]{name}[/bold] modified")


@tx_app.command("remove-zone")
def tx_remove_zone(
    name: Annotated[str, typer.Argument(help="Zone name.")],
    authority: AuthorityOption = None,
    config: ConfigOption = None,
    db: DbOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Remove a zone and every address that belongs to it."""
    _configure_logging(verbose)
    settings = _settings(config, db)

    try:
        msg = MsgRemoveZone(
            authority=settings.authority if authority is None else authority,
            zone=name,
        )
        with _open_keeper(settings) as keeper:
            MsgServer(keeper).remove_zone(msg)
    except TaxExemptError as e:
        _fail(e)

    console.print(f"[green]✓[/green] Zone [bold]{name}[/bold] removed")


@tx_app.command("add-address")
def tx_add_address(
    zone: Annotated[str, typer.Argument(help="Zone name.")],
    addresses: Annotated[List[str], typer.Argument(help="Addresses to add.")],
    authority: AuthorityOption = None,
    config: ConfigOption = None,
    db: DbOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Add one or more addresses to a zone."""
    _configure_logging(verbose)
    settings = _settings(config, db)

    try:
        msg = MsgAddAddress(
            authority=settings.authority if authority is None else authority,
            zone=zone,
            addresses=addresses,
        )
        with _open_keeper(settings) as keeper:
            MsgServer(keeper).add_address(msg)
    except TaxExemptError as e:
        _fail(e)

    console.print(f"[green]✓[/green] Added {len(addresses)} address(es) to [bold]{zone}[/bold]")


@tx_app.command("remove-address")
def tx_remove_address(
    zone: Annotated[str, typer.Argument(help="Zone name.")],
    addresses: Annotated[List[str], typer.Argument(help="Addresses to remove.")],
    authority: AuthorityOption = None,
    config: ConfigOption = None,
    db: DbOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Remove one or more addresses from a zone."""
    _configure_logging(verbose)
    settings = _settings(config, db)

    try:
        msg = MsgRemoveAddress(
            authority=settings.authority if authority is None else authority,
            zone=zone,
            addresses=addresses,
        )
        with _open_keeper(settings) as keeper:
            MsgServer(keeper).remove_address(msg)
    except TaxExemptError as e:
        _fail(e)

    console.print(
        f"[green]✓[/green] Removed {len(addresses)} address(es) from [bold]{zone}[/bold]"
    )


# =============================================================================
# Genesis
# =============================================================================

GenesisFileArgument = Annotated[
    Path,
    typer.Argument(
        help="Genesis file (.json, or YAML for any other suffix).",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]


@genesis_app.command("validate")
def genesis_validate(
    path: GenesisFileArgument,
    config: ConfigOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
) -> None:
    """Check a genesis file without touching the database."""
    _configure_logging(verbose)
    settings = _settings(config, None)

    try:
        state = load_genesis(path)
        validate_genesis(state, settings.address_prefix)
    except (TaxExemptError, ValidationError, yaml.YAMLError, ValueError) as e:
        _fail(e, json_output)

    if json_output:
        print(json.dumps({"valid": True, "zones": len(state.zone_list)}, indent=2))
    else:
        console.print(f"[green]✓[/green] {path.name} is valid ({len(state.zone_list)} zone(s))")


@genesis_app.command("import")
def genesis_import(
    path: GenesisFileArgument,
    config: ConfigOption = None,
    db: DbOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Validate a genesis file and load it into the database."""
    _configure_logging(verbose)
    settings = _settings(config, db)

    try:
        state = load_genesis(path)
        validate_genesis(state, settings.address_prefix)
        with _open_keeper(settings) as keeper:
            init_genesis(keeper, state)
    except (TaxExemptError, ValidationError, yaml.YAMLError, ValueError) as e:
        _fail(e)

    console.print(
        f"[green]✓[/green] Imported {len(state.zone_list)} zone(s) into {settings.db_path}"
    )


@genesis_app.command("export")
def genesis_export(
    out: Annotated[
        Optional[Path],
        typer.Option("--out", "-o", help="Write to this file instead of stdout.", resolve_path=True),
    ] = None,
    fmt: Annotated[
        str,
        typer.Option("--format", help="Output format for stdout: json or yaml."),
    ] = "json",
    config: ConfigOption = None,
    db: DbOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Export the registry as a genesis document."""
    _configure_logging(verbose)
    settings = _settings(config, db)
    if fmt not in ("json", "yaml"):
        raise typer.BadParameter("--format must be json or yaml")

    with _open_keeper(settings, must_exist=True) as keeper:
        try:
            state = export_genesis(keeper)
        except TaxExemptError as e:
            _fail(e)

    if out is None:
        print(dump_genesis(state, fmt))
    else:
        save_genesis(state, out)
        console.print(f"[green]✓[/green] Exported {len(state.zone_list)} zone(s) to {out}")


# =============================================================================
# Migration
# =============================================================================


@app.command("migrate-legacy")
def migrate_legacy(
    path: Annotated[
        Path,
        typer.Argument(
            help="Legacy exemption list (YAML list or one address per line).",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    zone: Annotated[
        str,
        typer.Option("--zone", help="Zone that receives the legacy addresses."),
    ] = LEGACY_ZONE_NAME,
    config: ConfigOption = None,
    db: DbOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Move a legacy flat exemption list into a single zone.

    Example:
        $ taxexempt migrate-legacy exemptions.txt --zone Binance
    """
    _configure_logging(verbose)
    settings = _settings(config, db)

    try:
        addresses = load_legacy_addresses(path)
        with _open_keeper(settings) as keeper:
            count = migrate_legacy_exemptions(keeper, addresses, zone_name=zone)
    except (TaxExemptError, yaml.YAMLError) as e:
        _fail(e)

    console.print(f"[green]✓[/green] Migrated {count} address(es) into [bold]{zone}[/bold]")


if __name__ == "__main__":
    app()
