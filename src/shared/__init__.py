"""
Shared Layer - Cross-Cutting Concerns
Configuration-bound infrastructure (database, locks, logging), error contract
and roles used by every bounded context.
"""
