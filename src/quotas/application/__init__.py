"""Quotas Application Layer"""
