"""
Compliance Kernel

Domain core for the tax penalty and compliance engine:
- Immutable rule, obligation, penalty and result records
- Exact decimal currency arithmetic with explicit rounding
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging and deterministic hashing
"""

__version__ = "0.1.0"
