"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the operations layer, a web handler, a CLI) need to tell apart
"that item does not exist" from "that request was already decided" from
"there are only 3 left".  Parsing message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)
  4. Every message is human-readable and can be shown to a user as-is

Example:
    try:
        workflow.approve(actor, request_id, notes)
    except InsufficientStockError as e:
        flash(str(e))  # "Insufficient stock for Gloves. Available: 3, Requested: 5"
        api_response(code=e.code, item=e.item_id,
                     available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from StockKernelError:

    StockKernelError (base)
    |
    +-- NotFoundError
    |   +-- StockItemNotFoundError
    |   +-- RequestNotFoundError
    |   +-- IssuedItemNotFoundError
    |   +-- AssetNotFoundError
    |   +-- UserNotFoundError
    |
    +-- InvalidStateError
    |   +-- RequestNotPendingError
    |   +-- RequestNotApprovedError
    |   +-- RequestAlreadyIssuedError
    |   +-- ItemAlreadyReturnedError
    |   +-- NotItemHolderError
    |   +-- AssetAlreadyDiscardedError
    |
    +-- InsufficientStockError
    |
    +-- ValidationError
    |   +-- EmptyRequestError
    |   +-- InvalidQuantityError
    |   +-- InvalidReturnPeriodError
    |   +-- InvalidDiscardReasonError
    |   +-- MissingMedicalFieldsError
    |   +-- DuplicateAssetNumberError
    |   +-- DuplicateEmailError
    |   +-- InvalidFieldError
    |
    +-- PermissionDeniedError
    |
    +-- StoreFailureError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | STOCK_ITEM_NOT_FOUND        | Stock item ID doesn't exist
                | REQUEST_NOT_FOUND           | Request ID doesn't exist
                | ISSUED_ITEM_NOT_FOUND       | Issued item ID doesn't exist
                | ASSET_NOT_FOUND             | Asset ID doesn't exist
                | USER_NOT_FOUND              | User ID doesn't exist
----------------|-----------------------------|-----------------------------------------
Invalid state   | REQUEST_NOT_PENDING         | Edit/approve/reject on a decided request
                | REQUEST_NOT_APPROVED        | Issue on a pending/rejected request
                | REQUEST_ALREADY_ISSUED      | Issue twice for one request
                | ITEM_ALREADY_RETURNED       | Return twice, or transfer a returned item
                | NOT_ITEM_HOLDER             | Transfer by someone who doesn't hold it
                | ASSET_ALREADY_DISCARDED     | Relocate/discard a discarded asset
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | Requested quantity > on-hand quantity
----------------|-----------------------------|-----------------------------------------
Validation      | EMPTY_REQUEST               | Request with no lines
                | INVALID_QUANTITY            | Zero or negative quantity
                | INVALID_RETURN_PERIOD       | Return period outside [1, 365] days
                | INVALID_DISCARD_REASON      | Reason not damaged/broken/expired
                | MISSING_MEDICAL_FIELDS      | Medical stock without batch/expiry
                | DUPLICATE_ASSET_NUMBER      | Asset item number already used
                | DUPLICATE_EMAIL             | User email already used
                | INVALID_FIELD               | Any other malformed field
----------------|-----------------------------|-----------------------------------------
Access          | PERMISSION_DENIED           | Actor lacks the admin role
----------------|-----------------------------|-----------------------------------------
Store           | STORE_FAILURE               | Database call failed or timed out

===============================================================================
"""


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute
    for machine-readable error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(StockKernelError):
    """Base exception for a referenced entity that does not exist."""

    code: str = "NOT_FOUND"
    entity: str = "Record"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} not found: {entity_id}")


class StockItemNotFoundError(NotFoundError):
    """Stock item with given ID was not found."""

    code: str = "STOCK_ITEM_NOT_FOUND"
    entity = "Stock item"


class RequestNotFoundError(NotFoundError):
    """Request with given ID was not found."""

    code: str = "REQUEST_NOT_FOUND"
    entity = "Request"


class IssuedItemNotFoundError(NotFoundError):
    """Issued item with given ID was not found."""

    code: str = "ISSUED_ITEM_NOT_FOUND"
    entity = "Issued item"


class AssetNotFoundError(NotFoundError):
    """Asset with given ID was not found."""

    code: str = "ASSET_NOT_FOUND"
    entity = "Asset"


class UserNotFoundError(NotFoundError):
    """User with given ID was not found."""

    code: str = "USER_NOT_FOUND"
    entity = "User"


# Lifecycle state exceptions


class InvalidStateError(StockKernelError):
    """Base exception for operations not allowed in the current lifecycle state."""

    code: str = "INVALID_STATE"


class RequestNotPendingError(InvalidStateError):
    """Request has already been approved or rejected."""

    code: str = "REQUEST_NOT_PENDING"

    def __init__(self, request_id: str, status: str, action: str):
        self.request_id = request_id
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} request {request_id}: it is already {status}"
        )


class RequestNotApprovedError(InvalidStateError):
    """Items can only be issued for an approved request."""

    code: str = "REQUEST_NOT_APPROVED"

    def __init__(self, request_id: str, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(
            f"Cannot issue items for request {request_id}: status is {status}, "
            "expected approved"
        )


class RequestAlreadyIssuedError(InvalidStateError):
    """Items for this request were already issued."""

    code: str = "REQUEST_ALREADY_ISSUED"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Items for request {request_id} have already been issued")


class ItemAlreadyReturnedError(InvalidStateError):
    """Issued item is already returned (cannot be returned or transferred again)."""

    code: str = "ITEM_ALREADY_RETURNED"

    def __init__(self, issued_item_id: str, action: str = "return"):
        self.issued_item_id = issued_item_id
        self.action = action
        super().__init__(
            f"Cannot {action} issued item {issued_item_id}: it has already been returned"
        )


class NotItemHolderError(InvalidStateError):
    """Transfer source is not the current holder of the issued item."""

    code: str = "NOT_ITEM_HOLDER"

    def __init__(self, issued_item_id: str, user_id: str, holder_id: str):
        self.issued_item_id = issued_item_id
        self.user_id = user_id
        self.holder_id = holder_id
        super().__init__(
            f"User {user_id} does not hold issued item {issued_item_id}"
        )


class AssetAlreadyDiscardedError(InvalidStateError):
    """Discarded assets are terminal."""

    code: str = "ASSET_ALREADY_DISCARDED"

    def __init__(self, asset_id: str, action: str):
        self.asset_id = asset_id
        self.action = action
        super().__init__(f"Cannot {action} asset {asset_id}: it has been discarded")


# Stock exceptions


class InsufficientStockError(StockKernelError):
    """Requested quantity exceeds the on-hand quantity of a stock item."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        item_id: str,
        item_name: str,
        requested: int,
        available: int,
    ):
        self.item_id = item_id
        self.item_name = item_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {item_name}. "
            f"Available: {available}, Requested: {requested}"
        )


# Validation exceptions


class ValidationError(StockKernelError):
    """Base exception for malformed input, detected before any write."""

    code: str = "VALIDATION_ERROR"


class EmptyRequestError(ValidationError):
    """A request must contain at least one line."""

    code: str = "EMPTY_REQUEST"

    def __init__(self):
        super().__init__(
            "A request must contain at least one item; reject the request instead"
        )


class InvalidQuantityError(ValidationError):
    """Quantity must be a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: object, field: str = "quantity"):
        self.quantity = quantity
        self.field = field
        super().__init__(f"{field} must be a positive whole number, got {quantity!r}")


class InvalidReturnPeriodError(ValidationError):
    """Return period is outside the allowed range of days."""

    code: str = "INVALID_RETURN_PERIOD"

    def __init__(self, days: object, minimum: int, maximum: int):
        self.days = days
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(
            f"Return period must be between {minimum} and {maximum} days, got {days!r}"
        )


class InvalidDiscardReasonError(ValidationError):
    """Discard reason must be one of the known reasons."""

    code: str = "INVALID_DISCARD_REASON"

    def __init__(self, reason: object, allowed: tuple[str, ...]):
        self.reason = reason
        self.allowed = allowed
        super().__init__(
            f"Discard reason must be one of {', '.join(allowed)}, got {reason!r}"
        )


class MissingMedicalFieldsError(ValidationError):
    """Medical stock needs a batch number and an expiry date."""

    code: str = "MISSING_MEDICAL_FIELDS"

    def __init__(self, missing: tuple[str, ...]):
        self.missing = missing
        super().__init__(
            f"Medical stock items require: {', '.join(missing)}"
        )


class DuplicateAssetNumberError(ValidationError):
    """Asset item numbers are unique."""

    code: str = "DUPLICATE_ASSET_NUMBER"

    def __init__(self, item_number: str):
        self.item_number = item_number
        super().__init__(
            f'Item number "{item_number}" already exists. '
            "Please use a unique item number."
        )


class DuplicateEmailError(ValidationError):
    """User emails are unique."""

    code: str = "DUPLICATE_EMAIL"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"A user with email {email} already exists")


class InvalidFieldError(ValidationError):
    """A field value is missing or malformed."""

    code: str = "INVALID_FIELD"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Access exceptions


class PermissionDeniedError(StockKernelError):
    """The acting user may not perform this operation."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, user_id: str, action: str):
        self.user_id = user_id
        self.action = action
        super().__init__(f"User {user_id} is not allowed to {action}")


# Store exceptions


class StoreFailureError(StockKernelError):
    """
    The persistent store rejected or failed a call.

    ``kind`` is one of: not_found, unique_violation, check_violation,
    connection_failure, unknown.
    """

    code: str = "STORE_FAILURE"

    NOT_FOUND = "not_found"
    UNIQUE_VIOLATION = "unique_violation"
    CHECK_VIOLATION = "check_violation"
    CONNECTION_FAILURE = "connection_failure"
    UNKNOWN = "unknown"

    def __init__(self, kind: str, detail: str):
        self.kind = kind
        self.detail = detail
        super().__init__(f"Storage operation failed ({kind}): {detail}")
