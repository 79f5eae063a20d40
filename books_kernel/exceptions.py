"""
Typed Exception Hierarchy for the Books Kernel.

===============================================================================
ERROR KINDS
===============================================================================

Callers catch by type and read structured attributes; they never parse
message text.  Every exception carries a class-level ``code`` that is
stable enough to hand to an API layer.

    BooksKernelError (base)
    |
    +-- NotFoundError                  entity id does not resolve in the org
    |   +-- OrganizationNotFoundError
    |   +-- AccountNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- AssetNotFoundError
    |   +-- AssetCategoryNotFoundError
    |   +-- DepreciationRecordNotFoundError
    |   +-- ProductNotFoundError
    |   +-- StandardCostNotFoundError
    |   +-- RevaluationNotFoundError
    |
    +-- ValidationError                malformed or incomplete input
    |   +-- InvalidEntryError
    |   +-- InactiveAccountError
    |   +-- UnbalancedTransactionError
    |   +-- BomCycleError
    |   +-- InvalidReasonCodeError
    |
    +-- InvalidStateError              operation forbidden from current state
    |   +-- InvalidTransitionError
    |   +-- AlreadyPostedError
    |   +-- AlreadyReversedError
    |
    +-- ConflictError                  uniqueness violation
    |   +-- DuplicateDocumentNumberError
    |   +-- DuplicateDepreciationPeriodError
    |   +-- OverlappingStandardCostError
    |
    +-- UnsupportedMethodError         also a builtin NotImplementedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Kind            | Code                          | When Raised
----------------|-------------------------------|-------------------------------
Not found       | ACCOUNT_NOT_FOUND             | Account id not in org
                | TRANSACTION_NOT_FOUND         | Transaction id not in org
                | ASSET_NOT_FOUND               | Asset id not in org
                | DEPRECIATION_RECORD_NOT_FOUND | No record for (asset, period)
                | PRODUCT_NOT_FOUND             | Product id not in org
                | STANDARD_COST_NOT_FOUND       | No standard cost record
                | REVALUATION_NOT_FOUND         | Revaluation id not in org
----------------|-------------------------------|-------------------------------
Validation      | INVALID_ENTRY                 | Bad ledger entry input
                | ACCOUNT_INACTIVE              | Posting to deactivated account
                | UNBALANCED_TRANSACTION        | Debits != credits (> 0.01)
                | BOM_CYCLE                     | Product appears in own BOM
                | INVALID_REASON_CODE           | Unknown revaluation reason
----------------|-------------------------------|-------------------------------
State           | INVALID_TRANSITION            | State machine refused move
                | ALREADY_POSTED                | Period/record posted twice
                | ALREADY_REVERSED              | Second reversal or void
----------------|-------------------------------|-------------------------------
Conflict        | DUPLICATE_DOCUMENT_NUMBER     | Number taken concurrently
                | DUPLICATE_DEPRECIATION_PERIOD | (asset, period) race
                | OVERLAPPING_STANDARD_COST     | Effective ranges overlap
----------------|-------------------------------|-------------------------------
Unsupported     | UNSUPPORTED_METHOD            | Units-of-production

Lookups are always scoped by organization; a row that exists in another
tenant raises exactly the same NotFoundError as a missing row.
"""


class BooksKernelError(Exception):
    """
    Base exception for all books kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "BOOKS_KERNEL_ERROR"


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(BooksKernelError):
    """Entity id does not resolve within the organization's scope."""

    code: str = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: str, message: str | None = None):
        self.entity = entity
        self.entity_id = str(entity_id)
        super().__init__(message or f"{entity} not found: {entity_id}")


class OrganizationNotFoundError(NotFoundError):
    code: str = "ORGANIZATION_NOT_FOUND"

    def __init__(self, organization_id: str):
        self.organization_id = str(organization_id)
        super().__init__("Organization", organization_id)


class AccountNotFoundError(NotFoundError):
    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = str(account_id)
        super().__init__("Account", account_id)


class TransactionNotFoundError(NotFoundError):
    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = str(transaction_id)
        super().__init__("Transaction", transaction_id)


class AssetNotFoundError(NotFoundError):
    code: str = "ASSET_NOT_FOUND"

    def __init__(self, asset_id: str):
        self.asset_id = str(asset_id)
        super().__init__("Asset", asset_id)


class AssetCategoryNotFoundError(NotFoundError):
    code: str = "ASSET_CATEGORY_NOT_FOUND"

    def __init__(self, category_id: str):
        self.category_id = str(category_id)
        super().__init__("Asset category", category_id)


class DepreciationRecordNotFoundError(NotFoundError):
    """No AssetDepreciation row exists for the asset and period."""

    code: str = "DEPRECIATION_RECORD_NOT_FOUND"

    def __init__(self, asset_id: str, period: str):
        self.asset_id = str(asset_id)
        self.period = period
        super().__init__(
            "Depreciation record",
            f"{asset_id}/{period}",
            f"No depreciation record for asset {asset_id} in period {period}",
        )


class ProductNotFoundError(NotFoundError):
    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = str(product_id)
        super().__init__("Product", product_id)


class StandardCostNotFoundError(NotFoundError):
    code: str = "STANDARD_COST_NOT_FOUND"

    def __init__(self, standard_cost_id: str):
        self.standard_cost_id = str(standard_cost_id)
        super().__init__("Standard cost", standard_cost_id)


class RevaluationNotFoundError(NotFoundError):
    code: str = "REVALUATION_NOT_FOUND"

    def __init__(self, revaluation_id: str):
        self.revaluation_id = str(revaluation_id)
        super().__init__("Cost revaluation", revaluation_id)


# =============================================================================
# Validation
# =============================================================================


class ValidationError(BooksKernelError):
    """Malformed or incomplete input, including an out-of-balance posting."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidEntryError(ValidationError):
    """A ledger entry spec is unusable (negative amount, bad rate, etc.)."""

    code: str = "INVALID_ENTRY"

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Entry {index}: {reason}", field="entries")


class InactiveAccountError(ValidationError):
    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_id: str, account_code: str):
        self.account_id = str(account_id)
        self.account_code = account_code
        super().__init__(f"Account {account_code} is inactive", field="account_id")


class UnbalancedTransactionError(ValidationError):
    """Base-currency debits and credits differ by more than the tolerance."""

    code: str = "UNBALANCED_TRANSACTION"

    def __init__(self, total_debits, total_credits, tolerance):
        self.total_debits = str(total_debits)
        self.total_credits = str(total_credits)
        self.difference = str(total_debits - total_credits)
        self.tolerance = str(tolerance)
        super().__init__(
            f"Transaction is out of balance: debits {total_debits}, "
            f"credits {total_credits}"
        )


class BomCycleError(ValidationError):
    code: str = "BOM_CYCLE"

    def __init__(self, product_id: str, path: list[str]):
        self.product_id = str(product_id)
        self.path = path
        super().__init__(
            f"Bill of materials for product {product_id} contains a cycle: "
            + " -> ".join(path)
        )


class InvalidReasonCodeError(ValidationError):
    code: str = "INVALID_REASON_CODE"

    def __init__(self, reason_code: str, allowed: list[str]):
        self.reason_code = reason_code
        self.allowed = allowed
        super().__init__(
            f"Unknown revaluation reason code {reason_code!r}; "
            f"expected one of {', '.join(allowed)}",
            field="reason_code",
        )


# =============================================================================
# State
# =============================================================================


class InvalidStateError(BooksKernelError):
    """The entity's current state forbids the requested operation."""

    code: str = "INVALID_STATE"


class InvalidTransitionError(InvalidStateError):
    code: str = "INVALID_TRANSITION"

    def __init__(self, entity: str, entity_id: str, current: str, target: str):
        self.entity = entity
        self.entity_id = str(entity_id)
        self.current = current
        self.target = target
        super().__init__(
            f"{entity} {entity_id} cannot move from {current} to {target}"
        )


class AlreadyPostedError(InvalidStateError):
    code: str = "ALREADY_POSTED"

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = str(entity_id)
        super().__init__(f"{entity} {entity_id} is already posted")


class AlreadyReversedError(InvalidStateError):
    code: str = "ALREADY_REVERSED"

    def __init__(self, transaction_id: str, reversal_id: str):
        self.transaction_id = str(transaction_id)
        self.reversal_id = str(reversal_id)
        super().__init__(
            f"Transaction {transaction_id} was already reversed by {reversal_id}"
        )


# =============================================================================
# Conflict
# =============================================================================


class ConflictError(BooksKernelError):
    """A storage uniqueness guard rejected a concurrent or duplicate write."""

    code: str = "CONFLICT"


class DuplicateDocumentNumberError(ConflictError):
    code: str = "DUPLICATE_DOCUMENT_NUMBER"

    def __init__(self, number: str):
        self.number = number
        super().__init__(f"Document number already in use: {number}")


class DuplicateDepreciationPeriodError(ConflictError):
    code: str = "DUPLICATE_DEPRECIATION_PERIOD"

    def __init__(self, asset_id: str, period: str):
        self.asset_id = str(asset_id)
        self.period = period
        super().__init__(
            f"Depreciation for asset {asset_id} in period {period} already exists"
        )


class OverlappingStandardCostError(ConflictError):
    code: str = "OVERLAPPING_STANDARD_COST"

    def __init__(self, product_id: str, existing_id: str):
        self.product_id = str(product_id)
        self.existing_id = str(existing_id)
        super().__init__(
            f"Standard cost for product {product_id} overlaps the effective "
            f"range of {existing_id}"
        )


# =============================================================================
# Unsupported
# =============================================================================


class UnsupportedMethodError(BooksKernelError, NotImplementedError):
    """A calculation method exists in the enum but has no implementation."""

    code: str = "UNSUPPORTED_METHOD"

    def __init__(self, method: str, reason: str):
        self.method = method
        self.reason = reason
        super().__init__(f"Method {method} is not supported: {reason}")
