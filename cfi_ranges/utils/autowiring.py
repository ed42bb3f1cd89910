#!/usr/bin/env python3
"""
Constructor autowiring for the dependency injection container.
"""

import inspect
import logging

logger = logging.getLogger(__name__)


def autowire_constructor(container, cls):
    """
    Automatically wire constructor dependencies using the DI container.

    Annotated parameters are resolved through container.get(); plain
    parameters are looked up as config values by name.
    """
    sig = inspect.signature(cls.__init__)
    kwargs = {}

    for param_name, param in sig.parameters.items():
        if param_name == 'self' or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue

        # Check for type annotation
        if param.annotation != inspect.Parameter.empty:
            try:
                kwargs[param_name] = container.get(param.annotation)
            except Exception as e:
                # If dependency can't be resolved and no default, fail the wiring
                if param.default == inspect.Parameter.empty:
                    logger.error(f"Cannot resolve dependency {param_name}: {param.annotation} for {cls.__name__}")
                    raise ValueError(f"Cannot autowire {param_name} for {cls.__name__}: {e}")
                # Use default value if available
                continue
        else:
            # Check for config values by parameter name
            if container.get_config_value(param_name) is not None:
                kwargs[param_name] = container.get_config_value(param_name)
            elif param.default == inspect.Parameter.empty:
                logger.warning(f"No type annotation or config value for {param_name} in {cls.__name__}")

    return cls(**kwargs)
