"""Infrastructure layer: dependency graph, cycle detection, manifest decoding.

This layer depends on stdlib, NetworkX, and the domain models it derives
graphs from. It must never import from services, commands, or output.
"""
