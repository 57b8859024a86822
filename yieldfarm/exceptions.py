"""
Yield Farming Exceptions

Package-wide exception classes. Ledger call errors live in
yieldfarm.farming.types next to the records they guard.
"""


class YieldFarmException(Exception):
    """Base exception for yieldfarm."""
    pass


class ConfigurationError(YieldFarmException):
    """Configuration error."""
    pass
