"""
InvoiceCoordinator -- drives a voice command from utterance to invoice.

Responsibility:
    Owns the lifecycle of every voice command: tokenize, match, resolve,
    price, present the preview, wait for the employee, then post.  It is
    the ONLY component that mutates external state, and it does so in
    exactly one place: the posting unit run by ``confirm``.

Architecture position:
    Kernel > Services -- imperative shell around the pure domain pipeline
    (tokenizer -> GrammarMatcher -> EntityResolver -> PricingEngine).
    Stores are reached only through the unit of work it is given.

Invariants enforced:
    - State changes follow INVOICE_COMMAND_WORKFLOW; any other move is an
      InvalidCommandTransitionError.
    - REJECTED and cancellation perform no external side effects.
    - Posting is atomic: stock decrement, PENDING invoice, cash-flow entry
      and the POSTED transition commit in ONE transaction or not at all.
    - Posting runs under the product's lock (no oversell in-process) and
      under the command's lock (concurrent confirms of one command
      serialize; the second sees POSTED and returns ALREADY_POSTED).
    - Locks are held for the posting transaction only, never while a
      draft waits for confirmation.
    - The posted values are the previewed draft's values.  A confirm that
      names a different fingerprint is refused.
    - At most one invoice per command id (database unique key).

Failure modes:
    Every domain failure is returned as a CommandResult carrying the typed
    exception and its exact message; nothing domain-level is raised to
    the caller.  Transient store failures (OperationalError) during posting
    are retried with backoff, then reported as POSTING_FAILED with the
    command back in AWAITING_CONFIRMATION; any other store error during
    posting is reported the same way without retrying.  A store failure
    during resolution rejects the command with LOOKUP_UNAVAILABLE, and
    one during registration leaves it in AWAITING_REGISTRATION.  Once the
    invoice is committed, notification problems never change the result.

Audit relevance:
    Every transition is logged as ``command_transition`` with the command
    id bound into the log context; posting emits ``posting_started`` /
    ``posting_completed`` / ``posting_failed``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from uuid import uuid4

from sqlalchemy.exc import IntegrityError

from showroom_kernel.domain.clock import Clock, SystemClock
from showroom_kernel.domain.dtos import (
    CashFlowRecord,
    CustomerDetails,
    Intent,
    InvoicePreview,
    PostedInvoice,
    PricedInvoiceDraft,
)
from showroom_kernel.domain.grammar import GrammarMatcher
from showroom_kernel.domain.pricing import PricingEngine
from showroom_kernel.domain.resolver import EntityResolver, normalize_phone
from showroom_kernel.domain.tokenizer import tokenize
from showroom_kernel.domain.workflow import (
    INVOICE_COMMAND_WORKFLOW,
    CommandState,
    Workflow,
)
from showroom_kernel.exceptions import (
    CommandNotFoundError,
    ConfirmationTimeoutError,
    CustomerNotFoundError,
    DraftFingerprintMismatchError,
    GrammarError,
    InsufficientStockError,
    InvalidCommandTransitionError,
    InvalidCustomerDetailsError,
    LookupUnavailableError,
    PostingError,
    PostingFailedError,
    PricingError,
    ResolutionError,
    ShowroomKernelError,
)
from showroom_kernel.logging_config import LogContext, get_logger
from showroom_kernel.services.notification_service import NotificationDispatcher
from showroom_kernel.services.product_locks import LockRegistry, ProductLockRegistry
from showroom_kernel.services.retry_policy import RetryExhaustedError, RetryPolicy
from showroom_kernel.services.unit_of_work import UnitOfWork

logger = get_logger("services.invoice_coordinator")


class CommandStatus(str, Enum):
    """Outcome of one coordinator operation."""

    AWAITING_CONFIRMATION = "awaiting_confirmation"
    AWAITING_REGISTRATION = "awaiting_registration"
    IN_PROGRESS = "in_progress"
    POSTED = "posted"
    ALREADY_POSTED = "already_posted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    INSUFFICIENT_STOCK = "insufficient_stock"
    POSTING_FAILED = "posting_failed"
    FINGERPRINT_MISMATCH = "fingerprint_mismatch"
    INVALID_TRANSITION = "invalid_transition"
    COMMAND_NOT_FOUND = "command_not_found"


# Status reported by get() for a command resting in each state
_STATE_STATUS: dict[CommandState, CommandStatus] = {
    CommandState.AWAITING_REGISTRATION: CommandStatus.AWAITING_REGISTRATION,
    CommandState.DRAFTING: CommandStatus.IN_PROGRESS,
    CommandState.AWAITING_CONFIRMATION: CommandStatus.AWAITING_CONFIRMATION,
    CommandState.POSTING: CommandStatus.IN_PROGRESS,
    CommandState.POSTED: CommandStatus.POSTED,
    CommandState.REJECTED: CommandStatus.REJECTED,
}


@dataclass
class InvoiceCommand:
    """
    Mutable record of one voice command, owned by the coordinator.

    Only mutated while the coordinator holds the command's lock.
    """

    command_id: str
    utterance: str
    employee_id: str | None
    opened_at: datetime
    state: CommandState = CommandState.DRAFTING
    intent: Intent | None = None
    pending_phone: str | None = None
    draft: PricedInvoiceDraft | None = None
    preview: InvoicePreview | None = None
    awaiting_since: datetime | None = None
    finished_at: datetime | None = None
    invoice: PostedInvoice | None = None
    cashflow: CashFlowRecord | None = None
    error: ShowroomKernelError | None = None
    history: list[tuple[CommandState, str, CommandState]] = field(default_factory=list)

    def snapshot(self) -> CommandSnapshot:
        return CommandSnapshot(
            command_id=self.command_id,
            state=self.state,
            utterance=self.utterance,
            employee_id=self.employee_id,
            templates=self.intent.templates if self.intent is not None else (),
            pending_phone=self.pending_phone,
            preview=self.preview,
            invoice=self.invoice,
            error_code=self.error.code if self.error is not None else None,
            message=str(self.error) if self.error is not None else None,
            opened_at=self.opened_at,
            awaiting_since=self.awaiting_since,
            history=tuple(self.history),
        )


@dataclass(frozen=True)
class CommandSnapshot:
    """Read-only view of a command at one moment."""

    command_id: str
    state: CommandState
    utterance: str
    employee_id: str | None
    templates: tuple[str, ...]
    pending_phone: str | None
    preview: InvoicePreview | None
    invoice: PostedInvoice | None
    error_code: str | None
    message: str | None
    opened_at: datetime
    awaiting_since: datetime | None
    history: tuple[tuple[CommandState, str, CommandState], ...]


@dataclass(frozen=True)
class CommandResult:
    """Result of a coordinator operation."""

    status: CommandStatus
    command_id: str
    command: CommandSnapshot | None = None
    preview: InvoicePreview | None = None
    invoice: PostedInvoice | None = None
    cashflow: CashFlowRecord | None = None
    error: ShowroomKernelError | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        """Posted, including idempotent re-confirmation."""
        return self.status in (CommandStatus.POSTED, CommandStatus.ALREADY_POSTED)

    @property
    def state(self) -> CommandState | None:
        return self.command.state if self.command is not None else None

    @property
    def error_code(self) -> str | None:
        return self.error.code if self.error is not None else None


class InvoiceCoordinator:
    """
    Voice-command state machine.

    Args:
        unit_of_work: Opens transactions over the customer, product and
            invoice stores.
        pricing: PricingEngine (currency and precision).
        matcher: GrammarMatcher; defaults to the built-in templates.
        resolver: EntityResolver.
        clock: Time source for timeouts and timestamps.
        retry_policy: Backoff for transient failures of the posting unit.
        notifications: Post-commit dispatcher; None disables notifications.
        confirmation_timeout_seconds: How long a draft may wait; None
            means forever.
        retention_seconds: How long a POSTED or REJECTED command stays
            queryable before ``expire_stale`` evicts it; None keeps it.
        product_locks: Shared registry when several coordinators run in
            one process.
    """

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        *,
        pricing: PricingEngine | None = None,
        matcher: GrammarMatcher | None = None,
        resolver: EntityResolver | None = None,
        clock: Clock | None = None,
        retry_policy: RetryPolicy | None = None,
        notifications: NotificationDispatcher | None = None,
        confirmation_timeout_seconds: float | None = 300.0,
        retention_seconds: float | None = 3600.0,
        product_locks: ProductLockRegistry | None = None,
        workflow: Workflow = INVOICE_COMMAND_WORKFLOW,
    ):
        self._uow = unit_of_work
        self._pricing = pricing or PricingEngine()
        self._matcher = matcher or GrammarMatcher()
        self._resolver = resolver or EntityResolver()
        self._clock = clock or SystemClock()
        self._retry = retry_policy or RetryPolicy()
        self._notifications = notifications
        self._timeout = confirmation_timeout_seconds
        self._retention = retention_seconds
        self._product_locks = product_locks or ProductLockRegistry()
        self._command_locks = LockRegistry("command")
        self._workflow = workflow
        self._commands: dict[str, InvoiceCommand] = {}
        self._registry_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def open_command(
        self,
        utterance: str,
        employee_id: str | None = None,
        command_id: str | None = None,
    ) -> CommandResult:
        """
        Interpret an utterance and produce a draft for confirmation.

        Ends in AWAITING_CONFIRMATION (preview attached), in
        AWAITING_REGISTRATION when the phone is unknown, or in REJECTED.
        Re-opening an existing command id returns its current result
        without re-running anything.
        """
        command_id = command_id or uuid4().hex
        with self._registry_lock:
            existing = self._commands.get(command_id)
            if existing is None:
                command = InvoiceCommand(
                    command_id=command_id,
                    utterance=utterance,
                    employee_id=employee_id,
                    opened_at=self._clock.now(),
                    state=self._workflow.initial_state,
                )
                self._commands[command_id] = command
        if existing is not None:
            return self.get(command_id)

        with self._command_locks.hold(command_id), self._context(command):
            logger.info(
                "command_opened",
                extra={"utterance": utterance, "utterance_length": len(utterance)},
            )
            try:
                command.intent = self._matcher.match(tokenize(utterance))
            except GrammarError as exc:
                return self._reject(command, exc)
            return self._draft(command)

    def register_customer(self, command_id: str, details: CustomerDetails) -> CommandResult:
        """
        Register the unknown customer and resume drafting.

        A blank phone in ``details`` means the phone that was spoken.
        """
        command = self._find(command_id)
        if command is None:
            return self._not_found(command_id)

        with self._command_locks.hold(command_id), self._context(command):
            if command.state != CommandState.AWAITING_REGISTRATION:
                return self._invalid(command, "register")

            if not details.phone:
                details = CustomerDetails(
                    phone=command.pending_phone or "",
                    name=details.name,
                    email=details.email,
                    address=details.address,
                )
            elif normalize_phone(details.phone) != command.pending_phone:
                exc = InvalidCustomerDetailsError(
                    "phone", details.phone, f"does not match the spoken phone {command.pending_phone}"
                )
                return self._result(command, CommandStatus.AWAITING_REGISTRATION, error=exc)

            try:
                with self._uow.transaction() as stores:
                    stores.customers.register(details)
            except InvalidCustomerDetailsError as exc:
                command.error = exc
                return self._result(command, CommandStatus.AWAITING_REGISTRATION, error=exc)
            except IntegrityError:
                # Registered concurrently under the same phone; the lookup
                # in _draft finds the winner.
                logger.info("customer_registered_concurrently", extra={"phone": details.phone})
            except Exception as exc:
                logger.error("registration_error", extra={"error_type": type(exc).__name__}, exc_info=True)
                failure = LookupUnavailableError("registration", f"{type(exc).__name__}: {exc}")
                command.error = failure
                return self._result(command, CommandStatus.AWAITING_REGISTRATION, error=failure)

            self._apply(command, "register")
            command.pending_phone = None
            command.error = None
            return self._draft(command)

    def confirm(self, command_id: str, fingerprint: str | None = None) -> CommandResult:
        """
        Post the previewed draft.

        Args:
            command_id: The command to confirm.
            fingerprint: The preview fingerprint the employee saw; when
                given it must equal the draft's.
        """
        command = self._find(command_id)
        if command is None:
            return self._not_found(command_id)

        with self._command_locks.hold(command_id), self._context(command):
            if command.state == CommandState.POSTED:
                logger.info("command_already_posted", extra={"invoice_number": command.invoice.invoice_number})
                return self._result(
                    command,
                    CommandStatus.ALREADY_POSTED,
                    invoice=command.invoice,
                    cashflow=command.cashflow,
                )
            if command.state != CommandState.AWAITING_CONFIRMATION:
                return self._invalid(command, "confirm")
            if self._is_expired(command):
                return self._expire(command)

            draft = command.draft
            if fingerprint is not None and fingerprint != draft.fingerprint:
                exc = DraftFingerprintMismatchError(command_id, draft.fingerprint, fingerprint)
                logger.warning("draft_fingerprint_mismatch", extra={"received": fingerprint})
                return self._result(
                    command, CommandStatus.FINGERPRINT_MISMATCH, preview=command.preview, error=exc
                )

            self._apply(command, "confirm")
            return self._post(command)

    def cancel(self, command_id: str, reason: str = "cancelled by employee") -> CommandResult:
        """Discard a command that has not been posted.  No side effects."""
        command = self._find(command_id)
        if command is None:
            return self._not_found(command_id)

        with self._command_locks.hold(command_id), self._context(command):
            if self._workflow.find(command.state, "reject") is None:
                return self._invalid(command, "cancel")
            self._apply(command, "reject")
            command.error = None
            logger.info("command_cancelled", extra={"reason": reason})
            return self._result(command, CommandStatus.CANCELLED, message=reason)

    def expire_stale(self) -> list[CommandResult]:
        """
        Reject every draft that has waited past the confirmation window.

        Also evicts finished commands past the retention window.
        """
        with self._registry_lock:
            waiting = [
                c for c in self._commands.values()
                if c.state == CommandState.AWAITING_CONFIRMATION
            ]

        results = []
        for command in waiting:
            with self._command_locks.hold(command.command_id), self._context(command):
                if command.state == CommandState.AWAITING_CONFIRMATION and self._is_expired(command):
                    results.append(self._expire(command))
        self.evict_finished()
        return results

    def evict_finished(self) -> int:
        """Forget POSTED and REJECTED commands older than the retention window."""
        if self._retention is None:
            return 0
        cutoff = self._clock.now() - timedelta(seconds=self._retention)
        with self._registry_lock:
            evicted = [
                command_id for command_id, c in self._commands.items()
                if c.finished_at is not None and c.finished_at <= cutoff
            ]
            for command_id in evicted:
                del self._commands[command_id]
        for command_id in evicted:
            self._command_locks.discard(command_id)
        if evicted:
            logger.info("commands_evicted", extra={"count": len(evicted)})
        return len(evicted)

    def command_count(self) -> int:
        """Number of commands still held in memory."""
        with self._registry_lock:
            return len(self._commands)

    def get(self, command_id: str) -> CommandResult:
        """Current snapshot of a command."""
        command = self._find(command_id)
        if command is None:
            return self._not_found(command_id)
        return self._result(
            command,
            _STATE_STATUS[command.state],
            preview=command.preview,
            invoice=command.invoice,
            cashflow=command.cashflow,
            error=command.error,
        )

    def close(self, timeout: float | None = None) -> None:
        """Wait for pending notifications and stop the dispatcher."""
        if self._notifications is not None:
            self._notifications.flush(timeout=timeout)
            self._notifications.shutdown()

    # ------------------------------------------------------------------
    # Drafting
    # ------------------------------------------------------------------

    def _draft(self, command: InvoiceCommand) -> CommandResult:
        """Resolve and price the command's intent.  Command lock held."""
        try:
            with self._uow.transaction() as stores:
                order = self._resolver.resolve(command.intent, stores.customers, stores.products)
        except CustomerNotFoundError as exc:
            self._apply(command, "require_registration")
            command.pending_phone = exc.phone
            command.error = exc
            logger.info("customer_registration_required", extra={"phone": exc.phone})
            return self._result(command, CommandStatus.AWAITING_REGISTRATION, error=exc)
        except ResolutionError as exc:
            return self._reject(command, exc)
        except Exception as exc:
            logger.error("resolution_error", extra={"error_type": type(exc).__name__}, exc_info=True)
            return self._reject(command, LookupUnavailableError("resolution", f"{type(exc).__name__}: {exc}"))

        try:
            draft = self._pricing.price(order)
        except PricingError as exc:
            return self._reject(command, exc)

        command.draft = draft
        command.preview = self._pricing.preview(draft)
        command.awaiting_since = self._clock.now()
        self._apply(command, "present")
        logger.info(
            "draft_presented",
            extra={
                "fingerprint": draft.fingerprint,
                "final_amount": str(draft.final_amount),
                "currency": draft.currency,
            },
        )
        return self._result(command, CommandStatus.AWAITING_CONFIRMATION, preview=command.preview)

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def _post(self, command: InvoiceCommand) -> CommandResult:
        """Run the posting unit.  Command lock held, state POSTING."""
        draft = command.draft
        product = draft.order.product

        with self._product_locks.hold(product.id), LogContext.bind(product_id=str(product.id)):
            logger.info("posting_started", extra={"product_code": product.code, "quantity": draft.quantity})
            try:
                invoice, cashflow = self._retry.run(
                    lambda: self._post_once(command.command_id, draft),
                    label="posting",
                )
            except InsufficientStockError as exc:
                return self._posting_failed(command, CommandStatus.INSUFFICIENT_STOCK, exc)
            except RetryExhaustedError as exc:
                failure = PostingFailedError(command.command_id, exc.attempts, str(exc.last_error))
                return self._posting_failed(command, CommandStatus.POSTING_FAILED, failure)
            except IntegrityError as exc:
                try:
                    existing = self._existing_invoice(command.command_id)
                except Exception as lookup_exc:
                    logger.error("posted_invoice_lookup_failed", exc_info=True)
                    failure = PostingFailedError(command.command_id, 1, str(lookup_exc))
                    return self._posting_failed(command, CommandStatus.POSTING_FAILED, failure)
                if existing is None:
                    failure = PostingFailedError(command.command_id, 1, str(exc.orig))
                    return self._posting_failed(command, CommandStatus.POSTING_FAILED, failure)
                invoice, cashflow = existing
                command.invoice, command.cashflow = invoice, cashflow
                self._apply(command, "post")
                logger.info("command_already_posted", extra={"invoice_number": invoice.invoice_number})
                return self._result(command, CommandStatus.ALREADY_POSTED, invoice=invoice, cashflow=cashflow)
            except PostingError as exc:
                return self._posting_failed(command, CommandStatus.POSTING_FAILED, exc)
            except Exception as exc:
                # Not retryable; the unit rolled back and the draft stays confirmable
                logger.error("posting_error", extra={"error_type": type(exc).__name__}, exc_info=True)
                failure = PostingFailedError(command.command_id, 1, f"{type(exc).__name__}: {exc}")
                return self._posting_failed(command, CommandStatus.POSTING_FAILED, failure)

        command.invoice, command.cashflow = invoice, cashflow
        command.error = None
        self._apply(command, "post")
        with LogContext.bind(invoice_id=str(invoice.id)):
            logger.info(
                "posting_completed",
                extra={
                    "invoice_number": invoice.invoice_number,
                    "final_amount": str(invoice.final_amount),
                    "transaction_number": cashflow.transaction_number if cashflow else None,
                },
            )

        if self._notifications is not None:
            try:
                self._notifications.dispatch(invoice, draft.order.customer)
            except Exception:
                # RuntimeError once close() has shut the pool down
                logger.error(
                    "notification_dispatch_failed",
                    extra={"invoice_number": invoice.invoice_number},
                    exc_info=True,
                )

        return self._result(command, CommandStatus.POSTED, invoice=invoice, cashflow=cashflow)

    def _post_once(
        self, command_id: str, draft: PricedInvoiceDraft
    ) -> tuple[PostedInvoice, CashFlowRecord | None]:
        # The stock UPDATE is the first statement so the transaction takes
        # its write lock before reading anything.
        with self._uow.transaction() as stores:
            stores.products.decrement_stock(draft.order.product, draft.quantity)
            invoice_id = stores.invoices.insert_invoice(draft, command_id)
            stores.invoices.insert_cashflow(invoice_id, draft.final_amount)
            invoice = stores.invoices.mark_posted(invoice_id)
            cashflow = stores.invoices.cashflow_for(invoice_id)
        return invoice, cashflow

    def _existing_invoice(
        self, command_id: str
    ) -> tuple[PostedInvoice, CashFlowRecord | None] | None:
        with self._uow.transaction() as stores:
            invoice = stores.invoices.find_by_command(command_id)
            if invoice is None or invoice.status != "posted":
                return None
            return invoice, stores.invoices.cashflow_for(invoice.id)

    def _posting_failed(
        self, command: InvoiceCommand, status: CommandStatus, exc: ShowroomKernelError
    ) -> CommandResult:
        self._apply(command, "posting_failed")
        command.error = exc
        logger.warning("posting_failed", extra={"error_code": exc.code, "reason": str(exc)})
        return self._result(command, status, preview=command.preview, error=exc)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply(self, command: InvoiceCommand, action: str) -> None:
        transition = self._workflow.find(command.state, action)
        if transition is None:
            raise InvalidCommandTransitionError(command.command_id, command.state.value, action)
        command.history.append((command.state, action, transition.to_state))
        logger.debug(
            "command_transition",
            extra={
                "from_state": command.state.value,
                "action": action,
                "to_state": transition.to_state.value,
            },
        )
        command.state = transition.to_state
        if command.state in self._workflow.terminal_states:
            command.finished_at = self._clock.now()
            self._command_locks.discard(command.command_id)

    def _reject(self, command: InvoiceCommand, exc: ShowroomKernelError) -> CommandResult:
        self._apply(command, "reject")
        command.error = exc
        logger.info("command_rejected", extra={"error_code": exc.code, "reason": str(exc)})
        return self._result(command, CommandStatus.REJECTED, error=exc)

    def _is_expired(self, command: InvoiceCommand) -> bool:
        if self._timeout is None or command.awaiting_since is None:
            return False
        deadline = command.awaiting_since + timedelta(seconds=self._timeout)
        return self._clock.now() >= deadline

    def _expire(self, command: InvoiceCommand) -> CommandResult:
        exc = ConfirmationTimeoutError(command.command_id, self._timeout)
        self._apply(command, "reject")
        command.error = exc
        logger.info("command_expired", extra={"timeout_seconds": self._timeout})
        return self._result(command, CommandStatus.EXPIRED, error=exc)

    def _invalid(self, command: InvoiceCommand, action: str) -> CommandResult:
        exc = InvalidCommandTransitionError(command.command_id, command.state.value, action)
        logger.warning("invalid_command_transition", extra={"action": action, "state": command.state.value})
        return self._result(command, CommandStatus.INVALID_TRANSITION, error=exc)

    def _not_found(self, command_id: str) -> CommandResult:
        exc = CommandNotFoundError(command_id)
        return CommandResult(
            status=CommandStatus.COMMAND_NOT_FOUND,
            command_id=command_id,
            error=exc,
            message=str(exc),
        )

    def _find(self, command_id: str) -> InvoiceCommand | None:
        with self._registry_lock:
            return self._commands.get(command_id)

    def _context(self, command: InvoiceCommand):
        return LogContext.bind(command_id=command.command_id, employee_id=command.employee_id)

    def _result(
        self,
        command: InvoiceCommand,
        status: CommandStatus,
        *,
        preview: InvoicePreview | None = None,
        invoice: PostedInvoice | None = None,
        cashflow: CashFlowRecord | None = None,
        error: ShowroomKernelError | None = None,
        message: str | None = None,
    ) -> CommandResult:
        return CommandResult(
            status=status,
            command_id=command.command_id,
            command=command.snapshot(),
            preview=preview,
            invoice=invoice,
            cashflow=cashflow,
            error=error,
            message=message if message is not None else (str(error) if error is not None else None),
        )
