"""Infrastructure Layer: database backend, transaction machinery, and cross-cutting concerns.

Invariants:
    - Infrastructure depends on core/, never the other way round
    - Every failure leaving a transactional service is classified (core/errors.py)
"""
