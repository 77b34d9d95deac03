"""Service layer: resolution algorithm and ServiceResult adapters.

Services may import from domain and infrastructure layers.
They must never import from commands or output.
"""
