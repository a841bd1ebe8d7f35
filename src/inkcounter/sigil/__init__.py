"""
Sigil - Keys, wallet providers and signing capabilities.
"""
