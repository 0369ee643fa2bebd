"""
Instances Infrastructure Layer
ORM models, repositories and the control-plane Unit of Work
"""
