"""
CodeLens package.

Screenshot overlay that sends captured screens to a vision model and renders
the structured analysis.
"""

__version__ = "0.1.0"
