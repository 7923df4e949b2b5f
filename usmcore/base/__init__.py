"""Foundational pieces shared by every other usmcore package."""
#
# WHAT'S IN THIS MODULE:
# - config.py: engine configuration (pattern limits, sandbox, relay, paths)
# - exceptions.py: the UsmError hierarchy
#
