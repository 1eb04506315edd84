"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the VNDT ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Supply identities and the vault's virtual balance
2. solvency.py - Collateral ratio gating of mints, withdrawals and liquidations
3. monotonicity.py - Exchange rates and pool values only grow
4. atomicity.py - All-or-nothing operations, including refused transfers
5. accrual.py - Idempotent, time-driven interest accrual
6. determinism.py - Identical inputs give identical ledgers

These tests use hypothesis for property-based testing.
"""
