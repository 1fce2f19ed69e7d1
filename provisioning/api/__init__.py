"""
HTTP control API for the provisioning server.
"""
