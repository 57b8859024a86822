"""
yieldfarm: Sustainable Yield Farming Ledger

Core imports are lazily loaded so that importing a submodule does not
configure the whole package. For direct module access, import from
submodules:

    from yieldfarm.farming import FarmingLedger, LedgerConfig
    from yieldfarm.logger import get_logger
"""

# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    if name == 'FarmingLedger':
        from .farming import FarmingLedger
        return FarmingLedger
    elif name == 'LedgerConfig':
        from .farming import LedgerConfig
        return LedgerConfig
    raise AttributeError(f"module 'yieldfarm' has no attribute {name!r}")

__all__ = ['FarmingLedger', 'LedgerConfig']
