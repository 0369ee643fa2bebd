"""
Instances Domain Layer
Instance lifecycle rules and message audit records
"""
