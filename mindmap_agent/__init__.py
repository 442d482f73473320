"""Mind map generation and public API for the mindmap_agent package."""

from .utils.orchestrator import GenerationOrchestrator

# mindmap_agent.pipeline imports storage, which imports mindmap_agent.utils: keep it out of here
__all__ = ["GenerationOrchestrator"]
