"""abiforge — resolve contract ABIs from pluggable sources and emit bindings."""

__version__ = "0.1.0"
