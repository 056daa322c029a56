"""
ipa-cli: acquire storefront licenses and build installable packages.
"""

__version__ = "0.3.0"
