"""
Freight assistant: conversational RAG over the company's freight and commodity
documents, with per-session memory, human handoff and interaction analytics.
"""

__version__ = "1.0.0"
