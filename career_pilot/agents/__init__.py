"""
Content generation agents (Groq) and their artifact contracts.
"""
from .artifacts import ARTIFACT_MODELS, Artifact
from .content_generator import ContentGenerator, call_llm, extract_json
from .fallbacks import fallback_artifact

__all__ = [
    "ARTIFACT_MODELS",
    "Artifact",
    "ContentGenerator",
    "call_llm",
    "extract_json",
    "fallback_artifact",
]
