"""claimai: supervisor/router engine for tool-using LLM workers."""

__version__ = "0.3.0"
