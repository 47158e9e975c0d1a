"""
Configuration module for the overtime engine.
"""
from .logging_config import LoggingConfig, configure_logging, reset_logging
from .settings import (
    CalculationConfig,
    get_config,
    load_config,
    reload_config
)

__all__ = [
    'CalculationConfig',
    'LoggingConfig',
    'configure_logging',
    'get_config',
    'load_config',
    'reload_config',
    'reset_logging'
]
