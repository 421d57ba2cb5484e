"""
Registrar
Credential lifecycle and enrollment management for an academic records platform
"""

__version__ = "0.1.0"
