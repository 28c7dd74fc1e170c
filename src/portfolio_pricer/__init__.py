"""
Portfolio pricer.

Resolves current prices for a mixed portfolio (crypto, HK/US/A-share
equities, funds) through ordered provider fallback chains, converts them into
the reporting currency and writes them back to the portfolio sheet.
"""

__version__ = "0.1.0"
