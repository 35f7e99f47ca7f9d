"""
Typed Exception Hierarchy for the Billing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the kernel (screens, scripts, tests) must react to failures by
KIND, not by parsing messages:

  - A payment marked paid without a method is a user-correctable validation
    problem.
  - A client that cannot be deleted because quotes still reference it is an
    integrity conflict the user has to resolve first.
  - A store that cannot be reached is an availability problem; the caller
    may re-issue the mutation later.

Every exception therefore carries:
  1. A TYPED class (catch by type, not message)
  2. A static CODE attribute (machine-readable, API-safe)
  3. Structured DATA as attributes (not just a message string)

Example:
    try:
        payments.mark_as_paid(payment_id, method=None)
    except InvalidTransitionError as e:
        show_error(e.code, field="payment_method")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from BillingKernelError:

    BillingKernelError (base)
    |
    +-- AuthError
    |   +-- NotAuthenticatedError
    |
    +-- ValidationError
    |   +-- InvalidTransitionError
    |   +-- UnknownStatusError
    |   +-- InvalidAmountError
    |   +-- InvalidWindowError
    |   +-- MissingFieldError
    |
    +-- StoreError
    |   +-- ReferentialConflictError
    |   +-- StoreUnavailableError
    |   +-- RowNotFoundError
    |
    +-- LinkageError
        +-- DuplicateLinkError
        +-- LinkageRaceError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                     | When Raised
------------|--------------------------|---------------------------------------
Auth        | NOT_AUTHENTICATED        | No account context for the operation
------------|--------------------------|---------------------------------------
Validation  | INVALID_TRANSITION       | e.g. payment -> paid without a method
            | UNKNOWN_STATUS           | Raw status outside the closed enum
            | INVALID_AMOUNT           | Negative or non-numeric value
            | INVALID_WINDOW           | Aggregation window start >= end
            | MISSING_FIELD            | Required field absent or blank
------------|--------------------------|---------------------------------------
Store       | REFERENTIAL_CONFLICT     | Integrity constraint rejected a write
            | STORE_UNAVAILABLE        | I/O failure talking to the store
            | ROW_NOT_FOUND            | Row id not present for this account
------------|--------------------------|---------------------------------------
Linkage     | DUPLICATE_PAYMENT_LINK   | >1 payment already carries a quote_id
            | LINKAGE_RACE             | Concurrent writer created a 2nd link

===============================================================================
HANDLING PATTERNS
===============================================================================

1. LINKAGE IS FAIL-FAST. The kernel never retries a payment insert on its
   own; at-most-once creation matters more than availability. Re-issuing
   ensure_payment_for_approved_quote() is safe because it is idempotent.

2. STORE ERRORS ARE TRANSLATED at the gateway boundary. Services never see
   SQLAlchemy exceptions, only StoreError subclasses.

3. AGGREGATION NEVER RAISES on valid collections. Only a malformed window
   (InvalidWindowError) or an out-of-enum status parsed at the boundary
   (UnknownStatusError) can surface from the read path.
"""


class BillingKernelError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "BILLING_KERNEL_ERROR"


# Auth-related exceptions


class AuthError(BillingKernelError):
    """Base exception for identity/session errors."""

    code: str = "AUTH_ERROR"


class NotAuthenticatedError(AuthError):
    """No account context is available for the operation."""

    code: str = "NOT_AUTHENTICATED"

    def __init__(self, operation: str | None = None):
        self.operation = operation
        if operation:
            super().__init__(f"No authenticated account for operation: {operation}")
        else:
            super().__init__("No authenticated account")


# Validation exceptions


class ValidationError(BillingKernelError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class InvalidTransitionError(ValidationError):
    """Requested status transition is not allowed in the current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity: str, from_status: str, to_status: str, reason: str):
        self.entity = entity
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        super().__init__(
            f"Cannot move {entity} from '{from_status}' to '{to_status}': {reason}"
        )


class UnknownStatusError(ValidationError):
    """Raw value is not a member of a closed status enumeration."""

    code: str = "UNKNOWN_STATUS"

    def __init__(self, field: str, value: str, allowed: list[str]):
        self.field = field
        self.value = value
        self.allowed = allowed
        super().__init__(
            f"Unknown {field} '{value}'; expected one of {', '.join(allowed)}"
        )


class InvalidAmountError(ValidationError):
    """Monetary value is negative or not a number."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, value: str, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid amount {value!r}: {reason}")


class InvalidWindowError(ValidationError):
    """Aggregation window is empty or inverted."""

    code: str = "INVALID_WINDOW"

    def __init__(self, window_start: str, window_end: str):
        self.window_start = window_start
        self.window_end = window_end
        super().__init__(
            f"Window start {window_start} must be before window end {window_end}"
        )


class MissingFieldError(ValidationError):
    """Required field is absent or blank."""

    code: str = "MISSING_FIELD"

    def __init__(self, entity: str, field: str):
        self.entity = entity
        self.field = field
        super().__init__(f"{entity} requires a value for '{field}'")


# Store exceptions


class StoreError(BillingKernelError):
    """Base exception for entity store failures."""

    code: str = "STORE_ERROR"


class ReferentialConflictError(StoreError):
    """Store rejected an operation because of an integrity constraint."""

    code: str = "REFERENTIAL_CONFLICT"

    def __init__(self, table: str, row_id: str | None, detail: str):
        self.table = table
        self.row_id = row_id
        self.detail = detail
        target = f"{table} {row_id}" if row_id else table
        super().__init__(f"Integrity conflict on {target}: {detail}")


class StoreUnavailableError(StoreError):
    """I/O failure while talking to the backing store."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, table: str, detail: str):
        self.operation = operation
        self.table = table
        self.detail = detail
        super().__init__(f"Store unavailable during {operation} on {table}: {detail}")


class RowNotFoundError(StoreError):
    """Row with the given id does not exist for the current account."""

    code: str = "ROW_NOT_FOUND"

    def __init__(self, table: str, row_id: str):
        self.table = table
        self.row_id = row_id
        super().__init__(f"{table} row not found: {row_id}")


# Linkage exceptions


class LinkageError(BillingKernelError):
    """Base exception for quote/payment linkage failures."""

    code: str = "LINKAGE_ERROR"


class DuplicateLinkError(LinkageError):
    """More than one payment already points at the same quote."""

    code: str = "DUPLICATE_PAYMENT_LINK"

    def __init__(self, quote_id: str, payment_ids: list[str]):
        self.quote_id = quote_id
        self.payment_ids = payment_ids
        super().__init__(
            f"Quote {quote_id} is linked to {len(payment_ids)} payments: "
            f"{', '.join(payment_ids)}"
        )


class LinkageRaceError(LinkageError):
    """A concurrent writer linked another payment while this one was inserting."""

    code: str = "LINKAGE_RACE"

    def __init__(self, quote_id: str, discarded_payment_id: str):
        self.quote_id = quote_id
        self.discarded_payment_id = discarded_payment_id
        super().__init__(
            f"Concurrent link detected for quote {quote_id}; "
            f"discarded payment {discarded_payment_id}"
        )
