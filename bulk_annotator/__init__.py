"""
Bulk Concept Annotator using Gemini API.

Fills the Observaciones column of a concept/argument Google Sheet with short
Gemini-written opinions, one row at a time.
"""

__version__ = "1.0.0"
