"""Safety package.

Contains the lexical disallow gate run on every prompt before a provider is
resolved.
"""
