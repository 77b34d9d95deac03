"""Domain layer: types, errors, invoice models, and satisfaction rules.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, commands, or config.
"""
