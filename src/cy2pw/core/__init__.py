"""
Core Package.

Contains the conversion backend:
- Scanning primitives and chain parsing
- Pattern extraction and per-family transformers
- Orchestration, import fixing and structural validation
"""
