"""
vibe-router - provider routing and resilience core for a CLI coding assistant.
"""

__version__ = "0.1.0"
