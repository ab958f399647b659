"""
Mid-Year Reporting Portal Backend Package

This package contains the FastAPI backend for the grant mid-year reporting
portal, including:

- main.py: FastAPI application wiring
- services/allocation_validator.py: allocation reconciliation checks
- services/report_service.py: report drafting, submission and reopening
"""

__version__ = "1.0.0"
