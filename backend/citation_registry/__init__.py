"""
Municipal Traffic Citation Registry
Backend Application Package

Driver identity resolution for the citation system: duplicate-driver
detection, repeat-offense counting for escalating fines, and the
driver merge workflow.
"""

__version__ = "1.0.0"
