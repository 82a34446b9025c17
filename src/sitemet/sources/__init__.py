"""
Archive adapters.

Provides:
- SourceAdapter: common interface (list_required_files, extract, postprocess)
- CruMonthlyAdapter: CRU TS monthly grids, expanded to daily
- WatchDailyAdapter: WATCH-WFDEI daily grids
- create_adapter: build the adapter a configuration names

Example:
    adapter = create_adapter(config)
    daily = adapter.ingest(sites)
"""

from typing import Dict, Optional, Type

from sitemet.exceptions import ConfigurationError
from sitemet.sources.base import SourceAdapter
from sitemet.sources.cru import CruMonthlyAdapter
from sitemet.sources.watch import WatchDailyAdapter

ADAPTERS: Dict[str, Type[SourceAdapter]] = {
    CruMonthlyAdapter.name: CruMonthlyAdapter,
    WatchDailyAdapter.name: WatchDailyAdapter,
}


def register_adapter(adapter_class: Type[SourceAdapter]) -> None:
    """
    Register an additional archive adapter.

    Args:
        adapter_class: SourceAdapter subclass with a unique ``name``
    """
    if not adapter_class.name:
        raise ValueError(f"{adapter_class.__name__} has no source name")
    ADAPTERS[adapter_class.name.lower()] = adapter_class


def create_adapter(config, reader=None, report=None) -> SourceAdapter:
    """
    Create the adapter for ``config.source.name``.

    Args:
        config: Validated IngestConfig
        reader: Optional GridPointReader shared with the caller
        report: Optional IngestReport to record into

    Raises:
        ConfigurationError: The source name is not registered
    """
    adapter_class: Optional[Type[SourceAdapter]] = ADAPTERS.get(config.source.name)
    if adapter_class is None:
        raise ConfigurationError(
            f"Unknown source {config.source.name!r}; expected one of {', '.join(sorted(ADAPTERS))}"
        )
    return adapter_class(config, reader=reader, report=report)


__all__ = [
    "ADAPTERS",
    "CruMonthlyAdapter",
    "SourceAdapter",
    "WatchDailyAdapter",
    "create_adapter",
    "register_adapter",
]
