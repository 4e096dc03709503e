"""Command-line interface modules for grasshift pipeline execution.

This package contains core execution logic, making scripts/ optional and deletable.
"""

from grasshift.cli.run_pipeline import run_transition_pipeline

__all__ = ['run_transition_pipeline']
