"""
snaprestore — restore an appliance snapshot onto a remote target host.
"""

__version__ = "0.1.0"
