"""bankview - canonical views over an inconsistent banking API."""

__version__ = '0.1.0'
