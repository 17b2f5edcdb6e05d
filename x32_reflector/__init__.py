"""
x32-reflector: relays OSC traffic from mixing consoles to any number of subscribers
"""

__version__ = "1.0.0"
