"""A small command shell with aliases, history, pipelines and batch scripts."""

__version__ = "0.1.0"
__all__ = ["history", "aliases", "textutils", "parser", "shell"]