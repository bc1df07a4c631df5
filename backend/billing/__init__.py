"""Billing Application Package: subscription billing with atomic transactional services.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
