# escort_dispatch/__init__.py
"""
Escort assignment notification dispatch and request/assignment status reconciliation.
"""
__version__ = "1.0.0"
