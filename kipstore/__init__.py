"""In-memory and write-ahead-log layers of an LSM-tree key-value store."""

__version__ = "0.1.0"

__all__ = [
    "errors",
    "io",
    "iterator",
    "log",
    "mem_map",
    "mem_table",
    "sequence",
    "sharding",
]