"""
Identity Domain Layer
Users, roles and per-user resource ceilings
"""
