"""
Semantic Memory - long-term memory for conversational assistants.

This package decides whether new facts merge into existing memories,
recalls the most relevant memories for a query, and keeps a bounded
conversation window that feeds a background fact-extraction pipeline.
"""

__version__ = "1.0.0"
