"""cmdmenu - keyboard-driven command menu for the terminal"""

__version__ = "1.0.0"
APP_NAME = "cmdmenu"
