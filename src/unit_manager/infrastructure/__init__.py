"""
Infrastructure Layer

Provides technical implementations for external concerns.
"""
