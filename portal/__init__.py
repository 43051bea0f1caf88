"""
Electriborne portal.

Server-rendered CRM front-end for an electric-vehicle charging installation
business. Pages are thin forms bound to the Electriborne REST backend.
"""
__version__ = "1.0.0"
