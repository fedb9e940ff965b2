"""
Typed Exception Hierarchy for the Showroom Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure the employee can see must say exactly what went wrong: a
missing customer, an invalid product code, a bad variant, an out-of-range
discount, or insufficient stock.  Callers branch on the exception TYPE and
read structured attributes; they never parse message strings.

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ShowroomKernelError:

    ShowroomKernelError (base)
    |
    +-- GrammarError
    |   +-- NoTemplateMatchedError
    |   +-- SlotTypeMismatchError
    |   +-- DuplicateSlotError
    |
    +-- ResolutionError
    |   +-- MissingSlotError
    |   +-- NotFoundError
    |   |   +-- CustomerNotFoundError
    |   |   +-- ProductNotFoundError
    |   +-- InvalidProductCodeError
    |   +-- VariantMismatchError
    |   +-- DiscountOutOfRangeError
    |   +-- InvalidCustomerDetailsError
    |   +-- LookupUnavailableError
    |
    +-- PricingError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |
    +-- PostingError
    |   +-- PostingFailedError
    |   +-- DraftFingerprintMismatchError
    |   +-- InvalidInvoiceTransitionError
    |
    +-- CommandError
        +-- CommandNotFoundError
        +-- InvalidCommandTransitionError
        +-- ConfirmationTimeoutError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                         | When Raised
------------|------------------------------|-----------------------------------
Grammar     | NO_TEMPLATE_MATCHED          | Clause fits no command template
            | SLOT_TYPE_MISMATCH           | Wrong token kind at a slot
            | DUPLICATE_SLOT               | Two clauses disagree on a slot
------------|------------------------------|-----------------------------------
Resolution  | MISSING_SLOT                 | Required slot never spoken
            | CUSTOMER_NOT_FOUND           | No customer with that phone
            | PRODUCT_NOT_FOUND            | No catalog entry with that code
            | INVALID_PRODUCT_CODE         | Code fails the catalog shape
            | VARIANT_MISMATCH             | Attribute outside allowed set
            | DISCOUNT_OUT_OF_RANGE        | Discount not within [0, 100]
            | INVALID_CUSTOMER_DETAILS     | Registration data unusable
            | LOOKUP_UNAVAILABLE           | Store failed during lookup
------------|------------------------------|-----------------------------------
Pricing     | PRICING_ERROR                | Negative or unusable unit price
------------|------------------------------|-----------------------------------
Stock       | INSUFFICIENT_STOCK           | Stock below requested quantity
------------|------------------------------|-----------------------------------
Posting     | POSTING_FAILED               | Store failure while posting
            | DRAFT_FINGERPRINT_MISMATCH   | Confirmed preview != posted draft
            | INVALID_INVOICE_TRANSITION   | Invoice status already final
------------|------------------------------|-----------------------------------
Command     | COMMAND_NOT_FOUND            | Unknown command id
            | INVALID_COMMAND_TRANSITION   | Operation not allowed in state
            | CONFIRMATION_TIMEOUT         | Draft expired before confirmation

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        order = resolver.resolve(intent, customers, products)
    except CustomerNotFoundError as e:
        start_registration(phone=e.phone)
    except ResolutionError as e:
        show_employee(e.code, str(e))

Recoverable-by-employee errors (grammar, resolution, stock) are never
retried automatically.  Only PostingFailedError is the product of an
automatic bounded retry.
===============================================================================
"""

from decimal import Decimal


class ShowroomKernelError(Exception):
    """
    Base exception for all showroom kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SHOWROOM_KERNEL_ERROR"


# Grammar exceptions


class GrammarError(ShowroomKernelError):
    """Base exception for utterances that were not understood."""

    code: str = "GRAMMAR_ERROR"


class NoTemplateMatchedError(GrammarError):
    """
    No command template accepted the clause.

    Carries the furthest partial match so the caller can render a
    "did you mean" hint.
    """

    code: str = "NO_TEMPLATE_MATCHED"

    def __init__(
        self,
        clause: str,
        best_template: str | None = None,
        matched_tokens: int = 0,
        expected: str | None = None,
    ):
        self.clause = clause
        self.best_template = best_template
        self.matched_tokens = matched_tokens
        self.expected = expected
        message = f"No command template matched: '{clause}'"
        if best_template is not None and expected is not None:
            message += (
                f" (closest: {best_template}, expected {expected} "
                f"after {matched_tokens} token(s))"
            )
        super().__init__(message)

    @property
    def hint(self) -> str | None:
        """Short "did you mean" text for the employee, if any template came close."""
        if self.best_template is None or self.expected is None:
            return None
        return f"Did you mean the '{self.best_template}' command? Expected {self.expected}."


class SlotTypeMismatchError(GrammarError):
    """A slot position held a token of the wrong kind."""

    code: str = "SLOT_TYPE_MISMATCH"

    def __init__(
        self,
        slot: str,
        expected_kind: str,
        actual_kind: str,
        actual_text: str,
        template: str,
    ):
        self.slot = slot
        self.expected_kind = expected_kind
        self.actual_kind = actual_kind
        self.actual_text = actual_text
        self.template = template
        super().__init__(
            f"Slot '{slot}' expects {expected_kind} but got "
            f"{actual_kind} '{actual_text}' (template {template})"
        )


class DuplicateSlotError(GrammarError):
    """Two clauses filled the same slot with conflicting values."""

    code: str = "DUPLICATE_SLOT"

    def __init__(self, slot: str, first_value: str, second_value: str):
        self.slot = slot
        self.first_value = first_value
        self.second_value = second_value
        super().__init__(
            f"Slot '{slot}' filled twice with conflicting values: "
            f"'{first_value}' and '{second_value}'"
        )


# Resolution exceptions


class ResolutionError(ShowroomKernelError):
    """Base exception for intents that cannot be resolved against the stores."""

    code: str = "RESOLUTION_ERROR"


class MissingSlotError(ResolutionError):
    """A slot required for an invoice was never spoken."""

    code: str = "MISSING_SLOT"

    def __init__(self, slot: str):
        self.slot = slot
        super().__init__(f"Required slot '{slot}' is missing from the command")


class NotFoundError(ResolutionError):
    """Base exception for lookups that returned nothing."""

    code: str = "NOT_FOUND"


class CustomerNotFoundError(NotFoundError):
    """
    No customer is registered under the phone number.

    Not a dead end: the coordinator branches into customer registration.
    """

    code: str = "CUSTOMER_NOT_FOUND"

    def __init__(self, phone: str):
        self.phone = phone
        super().__init__(f"No customer registered with phone {phone}")


class ProductNotFoundError(NotFoundError):
    """The product code is well-formed but not in the catalog."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_code: str):
        self.product_code = product_code
        super().__init__(f"Product not found: {product_code}")


class InvalidProductCodeError(ResolutionError):
    """The literal product code does not have the catalog code shape."""

    code: str = "INVALID_PRODUCT_CODE"

    def __init__(self, product_code: str):
        self.product_code = product_code
        super().__init__(f"Invalid product code: '{product_code}'")


class VariantMismatchError(ResolutionError):
    """
    A variant attribute is outside the product's allowed set.

    ``value`` is None when the attribute was omitted but the product
    offers more than one choice.
    """

    code: str = "VARIANT_MISMATCH"

    def __init__(
        self,
        product_code: str,
        attribute: str,
        value: str | None,
        allowed: tuple[str, ...],
    ):
        self.product_code = product_code
        self.attribute = attribute
        self.value = value
        self.allowed = allowed
        choices = ", ".join(allowed) if allowed else "none"
        if value is None:
            message = (
                f"Product {product_code} requires a {attribute} "
                f"(one of: {choices})"
            )
        else:
            message = (
                f"Product {product_code} has no {attribute} '{value}' "
                f"(allowed: {choices})"
            )
        super().__init__(message)


class DiscountOutOfRangeError(ResolutionError):
    """Discount percent is outside [0, 100]."""

    code: str = "DISCOUNT_OUT_OF_RANGE"

    def __init__(self, discount_percent: Decimal):
        self.discount_percent = discount_percent
        super().__init__(
            f"Discount {discount_percent}% is outside the allowed range 0-100%"
        )


class InvalidCustomerDetailsError(ResolutionError):
    """Registration details cannot be stored (bad phone, empty name)."""

    code: str = "INVALID_CUSTOMER_DETAILS"

    def __init__(self, field: str, value: str | None, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid customer {field} {value!r}: {reason}")


class LookupUnavailableError(ResolutionError):
    """
    A customer or product store failed while the command was being resolved.

    Nothing was written.  The employee can repeat the command.
    """

    code: str = "LOOKUP_UNAVAILABLE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Store unavailable during {operation}: {reason}")


# Pricing exceptions


class PricingError(ShowroomKernelError):
    """Unit price cannot be priced (negative or not a number)."""

    code: str = "PRICING_ERROR"

    def __init__(self, product_code: str, unit_price: Decimal, reason: str):
        self.product_code = product_code
        self.unit_price = unit_price
        self.reason = reason
        super().__init__(
            f"Cannot price {product_code} at {unit_price}: {reason}"
        )


# Stock exceptions


class StockError(ShowroomKernelError):
    """Base exception for stock errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """Remaining stock is below the requested quantity."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, product_code: str, requested: int, available: int):
        self.product_code = product_code
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {product_code}: "
            f"requested {requested}, available {available}"
        )


# Posting exceptions


class PostingError(ShowroomKernelError):
    """Base exception for posting errors."""

    code: str = "POSTING_ERROR"


class PostingFailedError(PostingError):
    """
    The store failed while posting: retries were spent, or the error
    was not one worth retrying.

    The posting unit was rolled back; nothing was written.
    """

    code: str = "POSTING_FAILED"

    def __init__(self, command_id: str, attempts: int, reason: str):
        self.command_id = command_id
        self.attempts = attempts
        self.reason = reason
        super().__init__(
            f"Posting failed for command {command_id} after "
            f"{attempts} attempt(s): {reason}"
        )


class DraftFingerprintMismatchError(PostingError):
    """The employee confirmed a preview that differs from the draft on hand."""

    code: str = "DRAFT_FINGERPRINT_MISMATCH"

    def __init__(self, command_id: str, expected: str, received: str):
        self.command_id = command_id
        self.expected = expected
        self.received = received
        super().__init__(
            f"Confirmed preview for command {command_id} does not match "
            f"the draft: expected {expected[:12]}, received {received[:12]}"
        )


class InvalidInvoiceTransitionError(PostingError):
    """Invoice status may only leave PENDING, exactly once."""

    code: str = "INVALID_INVOICE_TRANSITION"

    def __init__(self, invoice_id: str, from_status: str, to_status: str):
        self.invoice_id = invoice_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invoice {invoice_id} cannot move from {from_status} to {to_status}"
        )


# Command lifecycle exceptions


class CommandError(ShowroomKernelError):
    """Base exception for command lifecycle errors."""

    code: str = "COMMAND_ERROR"


class CommandNotFoundError(CommandError):
    """No open or finished command with this id."""

    code: str = "COMMAND_NOT_FOUND"

    def __init__(self, command_id: str):
        self.command_id = command_id
        super().__init__(f"Command not found: {command_id}")


class InvalidCommandTransitionError(CommandError):
    """The requested action is not allowed from the command's current state."""

    code: str = "INVALID_COMMAND_TRANSITION"

    def __init__(self, command_id: str, from_state: str, action: str):
        self.command_id = command_id
        self.from_state = from_state
        self.action = action
        super().__init__(
            f"Command {command_id} cannot '{action}' from state {from_state}"
        )


class ConfirmationTimeoutError(CommandError):
    """The draft waited longer than the confirmation window."""

    code: str = "CONFIRMATION_TIMEOUT"

    def __init__(self, command_id: str, timeout_seconds: int):
        self.command_id = command_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Command {command_id} was not confirmed within "
            f"{timeout_seconds} seconds"
        )
