"""
layered-agents - hierarchical LLM agent orchestration with compressible memory.
"""

__version__ = "0.1.0"
