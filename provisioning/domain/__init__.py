"""
Domain layer: device records, protocol frames and exceptions.
"""
