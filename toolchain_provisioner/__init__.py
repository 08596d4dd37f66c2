"""Toolchain environment provisioner.

Materializes a working instructional-CPU toolchain (LC-3 assembler,
simulator and C compiler by default) on a pinned Ubuntu base:

- Fixed, ordered, fail-fast step sequence
- No silent overwrite of fetched sources
- Bounded retry for transient fetch failures only
- PATH mutated once, by append, at the very end
- Centralized logging and persisted state
"""

__all__ = []
