"""Hierarchy browser core: records in, graph model, tree and edge styling out."""

__version__ = "0.1.0"
