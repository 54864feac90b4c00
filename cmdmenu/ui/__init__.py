"""Rendering components"""

from .animation import AnimationEngine
from .glyphs import Glyphs
from .renderer import UIRenderer
from .theme import ThemeEngine

__all__ = ['AnimationEngine', 'Glyphs', 'ThemeEngine', 'UIRenderer']
