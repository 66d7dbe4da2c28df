"""
Exception hierarchy for taxexempt.

All taxexempt exceptions inherit from TaxExemptError, allowing callers to
catch every registry error with a single except clause.

Exception Categories:
    - InvalidArgumentError: Empty zone name, malformed address, bad paging
    - NotFoundError: Zone or membership does not exist (or does not match)
    - AlreadyAssociatedError: Address already bound to a different zone
    - GenesisError: Structural violations in a genesis snapshot
    - UnauthorizedError: Message signer is not the module authority
    - StorageError: Database operation failed

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors include context (zone, address where applicable)
    - Messages keep the wording operators already grep for
      ("no such zone in exemption list", "zone not exist", ...)
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Argument errors: 1xxx
ERROR_INVALID_ARGUMENT = 1001
ERROR_EMPTY_ZONE_NAME = 1002
ERROR_INVALID_ADDRESS = 1003
ERROR_INVALID_PAGINATION = 1004
ERROR_EMPTY_REQUEST = 1005

# Registry errors: 2xxx
ERROR_NOT_FOUND = 2000
ERROR_ZONE_NOT_FOUND = 2001
ERROR_ADDRESS_NOT_FOUND = 2002
ERROR_ALREADY_ASSOCIATED = 2003

# Genesis errors: 3xxx
ERROR_ZONE_LENGTH_INVALID = 3001
ERROR_ZONE_NOT_EXIST = 3002

# Authority errors: 4xxx
ERROR_UNAUTHORIZED = 4001

# Storage errors: 5xxx
ERROR_STORAGE_CONNECTION = 5001
ERROR_STORAGE_WRITE = 5002
ERROR_STORAGE_READ = 5003
ERROR_STORAGE_INTEGRITY = 5004


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class TaxExemptError(Exception):
    """
    Base exception for all taxexempt errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Argument Errors
# =============================================================================


@dataclass
class InvalidArgumentError(TaxExemptError):
    """
    Raised when a caller-supplied argument violates its invariants.

    Attributes:
        argument: Name of the offending argument
    """

    argument: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"invalid argument: {self.argument}"
        if self.code == 0:
            self.code = ERROR_INVALID_ARGUMENT
        self.context["argument"] = self.argument


@dataclass
class EmptyZoneNameError(InvalidArgumentError):
    """Raised when a zone operation is given an empty zone name."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "zone name cannot be empty"
        if self.code == 0:
            self.code = ERROR_EMPTY_ZONE_NAME
        if not self.argument:
            self.argument = "zone"
        super().__post_init__()


@dataclass
class InvalidAddressError(InvalidArgumentError):
    """Raised when an address fails identity-format validation."""

    address: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"invalid address {self.address!r}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_INVALID_ADDRESS
        if not self.argument:
            self.argument = "address"
        super().__post_init__()
        self.context.update({
            "address": self.address,
            "reason": self.reason,
        })


@dataclass
class InvalidPaginationError(InvalidArgumentError):
    """Raised when a page request carries conflicting or bad bounds."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "invalid pagination request"
        if self.code == 0:
            self.code = ERROR_INVALID_PAGINATION
        if not self.argument:
            self.argument = "pagination"
        super().__post_init__()


@dataclass
class EmptyRequestError(InvalidArgumentError):
    """Raised when a query handler receives no request at all."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "empty request"
        if self.code == 0:
            self.code = ERROR_EMPTY_REQUEST
        if not self.argument:
            self.argument = "request"
        super().__post_init__()


# =============================================================================
# Registry Errors
# =============================================================================


@dataclass
class NotFoundError(TaxExemptError):
    """
    Base class for lookups that found nothing.

    Attributes:
        zone: Zone name involved in the lookup
    """

    zone: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_NOT_FOUND
        self.context["zone"] = self.zone


@dataclass
class ZoneNotFoundError(NotFoundError):
    """Raised when a zone is not registered."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"no such zone in exemption list: {self.zone}"
        if self.code == 0:
            self.code = ERROR_ZONE_NOT_FOUND
        super().__post_init__()


@dataclass
class AddressNotFoundError(NotFoundError):
    """Raised when an address has no membership in the given zone."""

    address: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"no such address in exemption list: {self.address} (zone {self.zone})"
            )
        if self.code == 0:
            self.code = ERROR_ADDRESS_NOT_FOUND
        super().__post_init__()
        self.context["address"] = self.address


@dataclass
class AlreadyAssociatedError(TaxExemptError):
    """Raised when an address already belongs to a different zone."""

    address: str = ""
    zone: str = ""
    current_zone: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"address {self.address} is already associated with a different zone: "
                f"{self.current_zone}"
            )
        if self.code == 0:
            self.code = ERROR_ALREADY_ASSOCIATED
        if not self.suggestion:
            self.suggestion = (
                f"Remove the address from {self.current_zone} before adding it to {self.zone}"
            )
        self.context.update({
            "address": self.address,
            "zone": self.zone,
            "current_zone": self.current_zone,
        })


# =============================================================================
# Genesis Errors
# =============================================================================


@dataclass
class GenesisError(TaxExemptError):
    """Base class for genesis snapshot validation failures."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "invalid genesis state"


@dataclass
class ZoneLengthInvalidError(GenesisError):
    """Raised when the zone list and address groups differ in length."""

    zone_count: int = 0
    group_count: int = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                "length of zone list and addresses by zone must be equal "
                f"({self.zone_count} != {self.group_count})"
            )
        if self.code == 0:
            self.code = ERROR_ZONE_LENGTH_INVALID
        super().__post_init__()
        self.context.update({
            "zone_count": self.zone_count,
            "group_count": self.group_count,
        })


@dataclass
class ZoneNotExistError(GenesisError):
    """Raised when an address group references a zone not in the zone list."""

    zone: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"zone not exist: {self.zone}"
        if self.code == 0:
            self.code = ERROR_ZONE_NOT_EXIST
        super().__post_init__()
        self.context["zone"] = self.zone


# =============================================================================
# Authority Errors
# =============================================================================


@dataclass
class UnauthorizedError(TaxExemptError):
    """Raised when a message is not signed by the module authority."""

    expected: str = ""
    actual: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"invalid authority; expected {self.expected}, got {self.actual}"
        if self.code == 0:
            self.code = ERROR_UNAUTHORIZED
        self.context.update({
            "expected": self.expected,
            "actual": self.actual,
        })


# =============================================================================
# Storage Errors
# =============================================================================


@dataclass
class StorageError(TaxExemptError):
    """
    Base class for storage/database errors.

    Attributes:
        operation: The operation that failed (e.g., "set", "iterate")
    """

    operation: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["operation"] = self.operation


@dataclass
class StorageConnectionError(StorageError):
    """Raised when database connection fails."""

    db_path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to connect to database: {self.db_path}"
        if self.code == 0:
            self.code = ERROR_STORAGE_CONNECTION
        if not self.suggestion:
            self.suggestion = "Check that the database path is valid and writable"
        super().__post_init__()
        self.context["db_path"] = self.db_path


@dataclass
class StorageWriteError(StorageError):
    """Raised when a write operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database write failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StorageReadError(StorageError):
    """Raised when a read operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database read failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_READ
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StorageIntegrityError(StorageError):
    """
    Raised when stored state contradicts its own invariants.

    This is not a normal error path: it signals pre-existing corruption
    (e.g. an exported genesis that fails its own validation).
    """

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Database integrity check failed"
        if self.code == 0:
            self.code = ERROR_STORAGE_INTEGRITY
        if not self.suggestion:
            self.suggestion = "The database may be corrupted. Try using a backup."
        super().__post_init__()
