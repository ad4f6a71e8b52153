"""
RemitDesk API.

Multi-tenant back office for currency exchange and remittance businesses.
"""

__version__ = "1.0.0"
