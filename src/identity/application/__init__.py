"""Identity Application Layer"""
