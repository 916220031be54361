"""Diagnostic plots (Graphviz and matplotlib)."""
