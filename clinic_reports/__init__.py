"""
Clinic Reports

Reporting and analytics engine for clinic operations data.

Copyright: © 2025 Clinic Reports contributors
"""

__version__ = "1.0.0"
