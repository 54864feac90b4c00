"""Terminal input components"""

from .input_handler import InputEvent, InputHandler
from .keyboard import KeyboardMapper

__all__ = ['InputEvent', 'InputHandler', 'KeyboardMapper']
