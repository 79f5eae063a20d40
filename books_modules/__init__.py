"""
Books Modules.

Thin orchestration layers over the books kernel and engines.  Each module
contains domain models (the nouns), ORM persistence, and one service class
that owns the transaction boundary.

Modules:
- Inventory: products, stock positions, sales invoices, purchase orders, BOMs
- Assets: categories, registration, monthly depreciation, GL posting, disposal
- Planning: safety-stock recommendations
- Costing: standard costs, BOM roll-up, variances, cost revaluations
- GL: journal listing, manual entries, bulk approval, reversals

Calculations live in ``books_engines``; ledger writes go through
``books_kernel.services.ledger_service.LedgerService``.
"""
