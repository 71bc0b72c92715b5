"""
Persistence helpers: request records and live metrics.
"""
