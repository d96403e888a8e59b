"""
SmartBill Assistant - Source Package

A conversational bookkeeping assistant. Users describe spending in plain
language, voice or receipt photos; a language model extracts transactions
and the ledger records them.

DESIGN PRINCIPLES:
1. The model proposes → the reconciler sanitizes → the ledger records
2. The chat surface never crashes, it always gets a reply
3. Pending (auto-imported) entries never count toward the budget
4. Every step is auditable
5. Storage and model backends are injected, never global
"""

__version__ = "1.0.0"
__author__ = "SmartBill Team"
