"""Concrete adapters for docrag's external collaborators.

Each subpackage implements one interface from ``docrag.interfaces``;
``docrag.main`` picks and wires the adapters at startup.
"""
