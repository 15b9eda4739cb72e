"""Pipeline registry with plugin discovery via entry points.

The built-in Java and Node pipelines are always available. Third-party
packages can add pipelines through the 'tablegrant.pipelines' entry point
group.
"""

from importlib.metadata import entry_points
from typing import Dict, List, Optional, Type

from tablegrant.pipelines.base import Pipeline, PipelineError
from tablegrant.pipelines.java import JavaPipeline
from tablegrant.pipelines.node import NodePipeline

# Cache for discovered pipelines
_pipeline_cache: Dict[str, Type[Pipeline]] = {}
_discovery_done: bool = False

_BUILTIN_PIPELINES: Dict[str, Type[Pipeline]] = {
    "java": JavaPipeline,
    "node": NodePipeline,
}


def _discover_pipelines() -> None:
    """Register built-in pipelines and discover plugins from entry points."""
    global _discovery_done

    if _discovery_done:
        return

    _pipeline_cache.update(_BUILTIN_PIPELINES)

    for ep in entry_points(group="tablegrant.pipelines"):
        try:
            pipeline_class = ep.load()
        except Exception:
            # Skip plugins whose optional dependencies are missing
            continue
        if isinstance(pipeline_class, type) and issubclass(pipeline_class, Pipeline):
            _pipeline_cache.setdefault(ep.name, pipeline_class)

    _discovery_done = True


def get_pipeline(name: str) -> Pipeline:
    """Get a pipeline instance by name.

    Args:
        name: The name of the pipeline (e.g., "java").

    Returns:
        An instance of the requested pipeline.

    Raises:
        PipelineError: If the pipeline is not found.
    """
    _discover_pipelines()

    if name not in _pipeline_cache:
        available = ", ".join(sorted(_pipeline_cache.keys()))
        raise PipelineError(
            f"Unknown pipeline '{name}'. Available pipelines: {available or 'none'}."
        )

    return _pipeline_cache[name]()


def list_pipelines() -> List[str]:
    """List all available pipeline names.

    Returns:
        A sorted list of available pipeline names.
    """
    _discover_pipelines()
    return sorted(_pipeline_cache.keys())


def file_extension(filename: str) -> str:
    """Return the lowercase extension of ``filename`` without the dot."""
    _, dot, ext = filename.rpartition(".")
    return ext.lower() if dot else ""


def pipeline_for_file(filename: str) -> Optional[Pipeline]:
    """Return the pipeline handling ``filename``'s extension, if any.

    Args:
        filename: File name (only the extension is inspected).

    Returns:
        Pipeline instance, or None when no pipeline handles the extension.
    """
    _discover_pipelines()

    ext = file_extension(filename)
    for name in sorted(_pipeline_cache.keys()):
        pipeline = _pipeline_cache[name]()
        if ext in pipeline.extensions:
            return pipeline
    return None


def register_pipeline(name: str, pipeline_class: Type[Pipeline]) -> None:
    """Register a pipeline programmatically.

    Args:
        name: The name to register the pipeline under.
        pipeline_class: The pipeline class to register.

    Raises:
        PipelineError: If pipeline_class is not a subclass of Pipeline.
    """
    if not isinstance(pipeline_class, type) or not issubclass(pipeline_class, Pipeline):
        raise PipelineError(f"{pipeline_class} must be a subclass of Pipeline")

    _discover_pipelines()
    _pipeline_cache[name] = pipeline_class


def clear_registry() -> None:
    """Clear the pipeline registry.

    This is primarily useful for testing.
    """
    global _discovery_done
    _pipeline_cache.clear()
    _discovery_done = False
