"""Mirror documentation subtrees from GitHub repositories into a local
content store."""

__version__ = "0.3.0"
