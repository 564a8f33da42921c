"""
Tests Package.

This package contains test suites for validating the ARC simulator, including
unit tests for strong/weak/unowned bookkeeping, scope release, closure
capture, leak detection and the scenario compiler, plus end-to-end runs of
the playground demonstrations.
"""

# Tests Package
