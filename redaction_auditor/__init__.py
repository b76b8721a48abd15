"""
PDF Redaction Auditor - finds cosmetic redactions in PDF documents.

Renders each page while observing every overlay drawn on it (annotations,
filled rectangles, images), then checks the text layer underneath each
overlay to tell whether the "redacted" text can still be recovered.
"""

__version__ = "0.1.0"
