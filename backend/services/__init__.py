from importlib import import_module

__all__ = [
    "polymarket_client",
    "PolymarketClient",
    "market_sync_service",
    "MarketSyncService",
    "maintenance_service",
    "MaintenanceService",
]

_LAZY_EXPORTS = {
    "polymarket_client": ("services.polymarket", "polymarket_client"),
    "PolymarketClient": ("services.polymarket", "PolymarketClient"),
    "market_sync_service": ("services.market_sync", "market_sync_service"),
    "MarketSyncService": ("services.market_sync", "MarketSyncService"),
    "maintenance_service": ("services.maintenance", "maintenance_service"),
    "MaintenanceService": ("services.maintenance", "MaintenanceService"),
}


def __getattr__(name):
    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module 'services' has no attribute {name!r}")

    module_name, attr_name = _LAZY_EXPORTS[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
