"""Prompting package.

This package contains the fixed system prompt table keyed by interaction mode. It
does not perform validation, provider resolution, or model invocation.
"""
