"""
Typed Exception Hierarchy for the project finance kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Revenue recognition and cost accumulation are read-modify-write sequences
over financial balances.  Callers (request handlers, schedulers) must be able
to tell "nothing to do" apart from "not allowed" apart from "bad input"
without parsing message strings:

    try:
        service.recognize(milestone_id, Decimal("40"), today, actor_id=actor)
    except NoOpError:
        pass                                  # progress did not move
    except InvalidStateError as e:
        respond(409, code=e.code, status=e.current_status)
    except ValidationError as e:
        respond(400, code=e.code, field=e.field)

Every class carries a ``code`` class attribute (machine-readable) and keeps
its context as attributes (the JSON log formatter serializes them as
``exc_*`` keys).

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FinanceKernelError (base)
    |
    +-- ValidationError            malformed input (percentage out of range, ...)
    +-- NotFoundError              referenced entity absent
    +-- InvalidStateError          operation not permitted in current status
    +-- ConflictError              duplicate active record
    +-- NoOpError                  recognition delta below epsilon
    +-- CycleDetectedError         predecessor chain loops back on itself
    |
    +-- PostingError
        +-- UnbalancedEntryError   debits != credits (or empty entry)
        +-- LedgerPostingError     ledger collaborator failed to post

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                  | When Raised
----------------------|-----------------------------------------------------
VALIDATION_FAILED     | Input outside its domain (amount, percentage, dates)
NOT_FOUND             | Milestone / project / deferred revenue id unknown
INVALID_STATE         | e.g. recognizing a CANCELLED milestone
CONFLICT              | Active deferred revenue already exists for invoice
NO_OP                 | Completion did not increase earned revenue
CYCLE_DETECTED        | Milestone predecessor chain forms a loop
UNBALANCED_ENTRY      | Ledger lines do not balance
LEDGER_POSTING_FAILED | Ledger gateway could not post the entry

None of these are swallowed inside the recognition / accumulation path:
a partially applied financial mutation would break the monotonicity
invariants, so the owning service rolls back and re-raises.
"""

from __future__ import annotations

from collections.abc import Sequence


class FinanceKernelError(Exception):
    """
    Base exception for all project finance errors.

    All subclasses define a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "FINANCE_KERNEL_ERROR"


class ValidationError(FinanceKernelError):
    """Input is malformed or outside its permitted range."""

    code: str = "VALIDATION_FAILED"

    def __init__(self, field: str, reason: str, value: object = None):
        self.field = field
        self.reason = reason
        self.value = None if value is None else str(value)
        super().__init__(f"Invalid {field}: {reason}")


class NotFoundError(FinanceKernelError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: object):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} not found: {entity_id}")


class InvalidStateError(FinanceKernelError):
    """Operation is not permitted in the entity's current status."""

    code: str = "INVALID_STATE"

    def __init__(
        self,
        entity_type: str,
        entity_id: object,
        current_status: str,
        operation: str,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {entity_type} {entity_id} "
            f"in status {current_status}"
        )


class ConflictError(FinanceKernelError):
    """An active record already exists for the given key."""

    code: str = "CONFLICT"

    def __init__(self, entity_type: str, key: object, existing_id: object = None):
        self.entity_type = entity_type
        self.key = str(key)
        self.existing_id = None if existing_id is None else str(existing_id)
        super().__init__(f"Active {entity_type} already exists for {key}")


class NoOpError(FinanceKernelError):
    """The requested change would not move any amount."""

    code: str = "NO_OP"

    def __init__(self, entity_id: object, delta: object, reason: str):
        self.entity_id = str(entity_id)
        self.delta = str(delta)
        self.reason = reason
        super().__init__(f"Nothing to recognize for {entity_id}: {reason}")


class CycleDetectedError(FinanceKernelError):
    """A milestone predecessor chain loops back to itself."""

    code: str = "CYCLE_DETECTED"

    def __init__(self, path: Sequence[object]):
        self.path = [str(p) for p in path]
        super().__init__(
            "Predecessor cycle detected: " + " -> ".join(self.path)
        )


# Posting-boundary exceptions


class PostingError(FinanceKernelError):
    """Base exception for ledger posting errors."""

    code: str = "POSTING_ERROR"


class UnbalancedEntryError(PostingError):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: str, credits: str, currency: str):
        self.debits = debits
        self.credits = credits
        self.currency = currency
        super().__init__(
            f"Unbalanced entry in {currency}: debits={debits}, credits={credits}"
        )


class LedgerPostingError(PostingError):
    """The ledger collaborator rejected or failed to post an entry."""

    code: str = "LEDGER_POSTING_FAILED"

    def __init__(self, reference: str, reason: str):
        self.reference = reference
        self.reason = reason
        super().__init__(f"Ledger posting failed for {reference}: {reason}")
