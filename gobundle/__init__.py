"""gobundle.

A small deploy helper that copies a Go program and every non-standard package it
transitively imports into a throwaway workspace (``vendor/<import path>``), then
runs a packaging command from inside that workspace.
"""

__all__: list[str] = ["__version__"]

__version__: str = "0.1.0"
