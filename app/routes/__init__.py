"""Cross-cutting HTTP routes"""
