"""Services Layer: business operations wired through the transaction framework.

Invariants:
    - Services receive their TransactionManager through the constructor
    - Mutating methods are transactional and surface only classified errors
"""
