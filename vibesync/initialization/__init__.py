"""
Process initialization: logging, component wiring and shutdown.
"""
