"""
CRM/ERP Medallion Warehouse
"""
__version__ = "1.0.0"
