"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the lending platform.

The tests are organized by invariant:
1. test_pool_conservation.py - Pool books match custodied value
2. test_operation_atomicity.py - All-or-nothing operations across components
3. test_status_monotonicity.py - Loan terms and forward-only status

These tests use hypothesis for property-based testing; random operation
sequences come from platform_actions.py.
"""
