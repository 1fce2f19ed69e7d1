"""
Device provisioning server.

Registers devices that connect over TCP, allocates each a unique id
and serial number, and exposes an HTTP control API for the live
connections.
"""
