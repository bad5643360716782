"""
Copy Repo - turn a project directory into one LLM-ready document.

This package walks a directory tree, filters it through ``.repoignore``
patterns, renders an ASCII tree plus line-numbered file contents, and
estimates the token count of the result before copying it to the clipboard.
"""

__version__ = "0.2.0"
__author__ = "Copy Files Team"
