"""
Translate key and mouse input into what nvim_input and nvim_input_mouse
expect.
"""
from collections import namedtuple
import re
import sys

__all__ = ('KeyEvent', 'MouseEvent', 'translate_key', 'translate_mouse',
           'translate_wheel', 'mouse_modifier', 'MODIFIER_KEYS')


class KeyEvent(namedtuple('KeyEvent', 'key shift ctrl alt meta')):
    """
    A key press. `key` is the name of the key ('Enter', 'ArrowLeft', 'F5')
    or the character it produced, already shifted ('A', not 'a').
    """
    __slots__ = ()

    def __new__(cls, key, shift=False, ctrl=False, alt=False, meta=False):
        return super().__new__(cls, key, shift, ctrl, alt, meta)


MouseEvent = namedtuple('MouseEvent', 'button action modifier grid row col')


SPECIAL_KEYS = {
    'Escape': 'Esc',
    'Enter': 'CR',
    'Backspace': 'BS',
    'Tab': 'Tab',
    ' ': 'Space',
    'ArrowLeft': 'Left',
    'ArrowRight': 'Right',
    'ArrowUp': 'Up',
    'ArrowDown': 'Down',
    'Delete': 'Del',
    'Insert': 'Insert',
    'Home': 'Home',
    'End': 'End',
    'PageUp': 'PageUp',
    'PageDown': 'PageDown',
    '<': 'LT',
    # Mac keyboards have a Help key where others have Insert.
    'Help': 'Insert' if sys.platform == 'darwin' else 'Help',
}

#: Keys that only modify other keys and are never sent by themselves.
MODIFIER_KEYS = ('Shift', 'Control', 'Alt', 'Meta', 'CapsLock')

_FUNCTION_KEY_RE = re.compile(r'^F\d{1,2}$')


def translate_key(event):
    """
    Return the input string for a `KeyEvent`, or None when the key produces
    no input.
    """
    key = event.key

    if not key or key in MODIFIER_KEYS:
        return None

    if key in SPECIAL_KEYS:
        return _apply_modifiers(SPECIAL_KEYS[key], event, wrap=True)

    if _FUNCTION_KEY_RE.match(key):
        return _apply_modifiers(key, event, wrap=True)

    return _apply_modifiers(key, event, wrap=False)


def _apply_modifiers(base, event, wrap):
    mods = []

    # A shifted character arrives as the shifted character already.
    if event.shift and (len(base) > 1 or event.ctrl or event.alt or event.meta):
        mods.append('S')
    if event.ctrl:
        mods.append('C')
    if event.alt:
        mods.append('A')
    if event.meta:
        mods.append('D')

    if mods:
        return '<%s-%s>' % ('-'.join(mods), base)
    elif wrap:
        return '<%s>' % base
    else:
        return base


def mouse_modifier(ctrl=False, shift=False, alt=False):
    return ('C' if ctrl else '') + ('S' if shift else '') + ('A' if alt else '')


def translate_mouse(button, action, grid, row, col, ctrl=False, shift=False, alt=False):
    """ Build the arguments of nvim_input_mouse. """
    return MouseEvent(button, action, mouse_modifier(ctrl, shift, alt), grid, row, col)


#: Smallest wheel delta that counts as scrolling.
WHEEL_THRESHOLD = 3


def translate_wheel(delta_x, delta_y, grid, row, col, ctrl=False, shift=False, alt=False):
    """
    Turn a wheel movement into a mouse event, using the axis that moved
    most. Returns None for movements below the threshold.
    """
    if abs(delta_y) < WHEEL_THRESHOLD and abs(delta_x) < WHEEL_THRESHOLD:
        return None

    if abs(delta_y) >= abs(delta_x):
        action = 'up' if delta_y < 0 else 'down'
    else:
        action = 'left' if delta_x < 0 else 'right'

    return translate_mouse('wheel', action, grid, row, col, ctrl, shift, alt)
