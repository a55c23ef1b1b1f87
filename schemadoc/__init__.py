"""Catalog introspection and cross-referenced object-graph assembly."""
