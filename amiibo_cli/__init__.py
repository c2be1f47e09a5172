"""
amiibo-cli: track, export and share an amiibo collection from the terminal.
"""

__version__ = "1.0.0"
