"""Dialect pipelines turning source text into catalog entries and permission rows.

Example:
    >>> from tablegrant.pipelines import list_pipelines, pipeline_for_file
    >>> print(list_pipelines())
    ['java', 'node']
    >>> pipeline_for_file("PedidoService.java").name
    'java'
"""

from tablegrant.pipelines.base import Pipeline, PipelineError
from tablegrant.pipelines.java import JavaPipeline
from tablegrant.pipelines.node import NodePipeline
from tablegrant.pipelines.registry import (
    clear_registry,
    get_pipeline,
    list_pipelines,
    pipeline_for_file,
    register_pipeline,
)

__all__ = [
    # Base classes
    "Pipeline",
    "PipelineError",
    # Built-in pipelines
    "JavaPipeline",
    "NodePipeline",
    # Registry functions
    "get_pipeline",
    "list_pipelines",
    "pipeline_for_file",
    "register_pipeline",
    "clear_registry",
]
