"""CEP gateway service.

Upstream hop of the postal code weather chain: validates the client's
postal code and forwards it to the weather resolver.
"""

__version__ = "1.0.0"
