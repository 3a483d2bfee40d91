"""
Stock Kernel

Per-product stock ledger with moving weighted-average costing (PPP):
- Atomic read-modify-write of (stock, average_cost)
- Append-only stock movement audit trail
- Purchase receipt, consumption, simple and blended returns
- Replay of the movement history back to the cached product state
"""

__version__ = "0.1.0"
