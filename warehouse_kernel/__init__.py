"""
Warehouse Kernel

Stock-keeping core for tiered (carton / box / piece) inventory held in
addressable warehouse slots:
- Per-SKU conversion rates with an injectable default
- Authoritative, re-validated stock deduction
- Dual write path (gateway, then direct store) with collected failures
- Append-only stock events for every mutation
"""

__version__ = "0.1.0"
