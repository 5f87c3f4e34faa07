"""
livepreview - Live-preview compilation core with ghost-fix repair loop

Turns AI-generated source files into a runnable preview bundle and keeps
repairing the errors that stop it from building.
"""

__version__ = "1.0.0"
__author__ = "BharatBuild AI Team"
