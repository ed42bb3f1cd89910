#!/usr/bin/env python3
"""
Dependency Injection Container for cfi-range-engine.
Wires the comparator chosen by configuration into the merge service and its consumers.
"""

import logging
from typing import Any, Callable, Dict, Set

from cfi_ranges.utils.autowiring import autowire_constructor
from cfi_ranges.utils.config_loader import ConfigLoader

logger = logging.getLogger(__name__)


class ComparatorKey: pass


class DIContainer:
    """
    Resolves engine components by key.

    Factories win over autowiring. Keys registered with register_singleton()
    are built once by autowiring and then shared; anything else is autowired
    fresh on every get().
    """

    def __init__(self):
        self._instances: Dict[Any, Any] = {}
        self._factories: Dict[Any, Callable[[], Any]] = {}
        self._config_values: Dict[str, Any] = {}
        self._shared: Set[type] = set()

    def register_singleton(self, cls: type) -> None:
        self._shared.add(cls)

    def register_factory(self, key, factory: Callable[[], Any]) -> None:
        """Factory results are cached, so each factory runs at most once."""
        self._factories[key] = factory

    def register_value(self, name: str, value: Any) -> None:
        self._config_values[name] = value

    def get(self, key):
        if key in self._instances:
            return self._instances[key]

        if key in self._factories:
            instance = self._factories[key]()
        else:
            instance = autowire_constructor(self, key)
            if key not in self._shared:
                return instance

        self._instances[key] = instance
        logger.debug(f"Resolved {getattr(key, '__name__', key)}")
        return instance

    def get_config_value(self, name: str):
        return self._config_values.get(name)


def create_container(environ=None) -> DIContainer:
    """Create and configure the DI container with all engine dependencies."""
    container = DIContainer()

    # Configuration values from environment
    settings = ConfigLoader.load_settings(environ)
    container.register_value('comparator_name', settings['CFI_COMPARATOR'])
    container.register_value('fast_path_enabled', ConfigLoader.get_bool(settings, 'CFI_FAST_MERGE_ENABLED'))
    container.register_value('html_parser', settings['CFI_HTML_PARSER'])

    from cfi_ranges.utils.cfi_compare import create_comparator
    from cfi_ranges.utils.cfi_generator import CfiTextMapper
    from cfi_ranges.services.range_merge_service import RangeMergeService
    from cfi_ranges.services.history_tracker import ReadingHistoryTracker

    container.register_factory(ComparatorKey, lambda: create_comparator(container.get_config_value('comparator_name')))

    container.register_factory(RangeMergeService, lambda: RangeMergeService(
        comparator=container.get(ComparatorKey),
        fast_path_enabled=container.get_config_value('fast_path_enabled')
    ))

    container.register_factory(CfiTextMapper, lambda: CfiTextMapper(
        html_parser=container.get_config_value('html_parser')
    ))

    container.register_singleton(ReadingHistoryTracker)

    return container
