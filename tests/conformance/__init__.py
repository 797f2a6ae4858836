"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the market.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Escrow, pool and token supply invariants
2. atomicity.py - Failed calls leave no trace
3. idempotency.py - Rewards are paid at most once
4. determinism.py - Same inputs, same state
5. temporal.py - Period indexing and the claim window
6. reentrancy.py - Transfer callbacks cannot re-enter the market

These tests use hypothesis for property-based testing.
"""
