"""Instances Application Layer"""
