"""
voyage_manifest_extraction: vision-driven extraction of voyage manifests.

Page images go to a multimodal model, the extracted rows are standardized onto
a fixed schema, and rows are aggregated into one record per voyage.
"""

__all__ = [
    "errors",
    "schema",
    "preprocess",
    "progress",
    "scheduler",
    "settings",
    "agents",
    "extraction",
    "standardize",
    "aggregate",
    "orchestrator",
]
