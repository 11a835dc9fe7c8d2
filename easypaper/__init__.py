"""
easypaper — batch literature reader.

Sends academic paper PDFs to an LLM provider (Gemini natively, or any
OpenAI-compatible chat endpoint via extracted text) for a structured ten-section
summary, and exports the results as Markdown, spreadsheet or PDF.
"""

__version__ = "0.1.0"
