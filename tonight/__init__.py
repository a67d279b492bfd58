"""
Tonight - refresh-orchestrated cache of tonight's event listings.
"""

__version__ = "0.1.0"
