"""Pydantic configuration schemas for the grasshift pipeline.

This module provides strictly typed configuration models for the
transition-year pipeline. All configuration validation, coercion, and
normalization happens at schema validation time via Pydantic.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    User-facing configuration (forgiving, minimal)
CLIConfig : class
    Command-line operational overrides
"""

from grasshift.schemas.resolve import resolve_config
from grasshift.schemas.internal import InternalConfig
from grasshift.schemas.param import ParamConfig
from grasshift.schemas.user import UserConfig
from grasshift.schemas.cli import CLIConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
    'CLIConfig',
]
