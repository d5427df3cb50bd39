"""
Test support utilities for machina tests.

Helpers that don't fit as pytest fixtures but are shared across test
files: a controllable clock and store doubles that record or fail.
"""
