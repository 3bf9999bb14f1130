"""Plugin Studio backend - LLM-assisted authoring for Rust server plugins"""

__version__ = "1.0.0"
