"""
Stock Modules.

Thin orchestration layers over the stock kernel:
- Catalog: warehouses, suppliers, projects, product lookup and creation
- Documents: receipts, project issues/returns, supplier returns, adjustments

Costing itself lives in the kernel (``stock_kernel.services.costing_service``).
"""
