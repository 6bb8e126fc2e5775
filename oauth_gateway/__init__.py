"""
OAuth Gateway

Delegates web application login to external OAuth2 identity providers,
normalizes the returned user into a single identity shape, and issues a
signed session cookie that is validated on every protected request
without a server-side session store.
"""

__version__ = "1.0.0"
