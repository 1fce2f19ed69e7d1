"""
Application layer: services and store interfaces.
"""
