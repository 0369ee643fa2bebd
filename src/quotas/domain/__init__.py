"""
Quotas Domain Layer
Admission decisions against per-user ceilings
"""
