"""Green Market order service"""
__version__ = "2.0.0"
