"""
Everything that has to do with the local terminal: raw mode, its size, the
alternate screen and decoding the key strokes it sends.
"""
from contextlib import contextmanager
import array
import codecs
import fcntl
import re
import termios
import tty

from .input import KeyEvent

__all__ = ('raw_mode', 'get_size', 'alternate_screen', 'KeyDecoder')


class raw_mode(object):
    """
    with raw_mode(stdin):
        ''' the pseudo-terminal stdin is now used in raw mode '''
    """
    def __init__(self, stdin):
        self.stdin = stdin
        self.attrs_before = None

    def __enter__(self):
        if self.stdin.isatty():
            self.attrs_before = termios.tcgetattr(self.stdin.fileno())

            # NOTE: On os X systems, using pty.setraw() fails. Therefor we are using this:
            newattr = termios.tcgetattr(self.stdin.fileno())
            newattr[tty.LFLAG] = newattr[tty.LFLAG] & ~(
                    termios.ECHO | termios.ICANON | termios.IEXTEN | termios.ISIG)

            # Don't translate CR into NL, we want to see <C-j> and <CR> apart.
            newattr[tty.IFLAG] = newattr[tty.IFLAG] & ~(termios.ICRNL | termios.IXON)
            termios.tcsetattr(self.stdin.fileno(), termios.TCSANOW, newattr)
        return self

    def __exit__(self, *a, **kw):
        if self.attrs_before is not None:
            termios.tcsetattr(self.stdin.fileno(), termios.TCSANOW, self.attrs_before)


def get_size(fileno):
    # Thanks to fabric (fabfile.org), and
    # http://sqizit.bartletts.id.au/2011/02/14/pseudo-terminals-in-python/
    """
    Get the size of this pseudo terminal.

    :returns: A (rows, cols) tuple.
    """
    # Buffer for the C call
    buf = array.array('h', [0, 0, 0, 0])

    # Do TIOCGWINSZ (Get)
    fcntl.ioctl(fileno, termios.TIOCGWINSZ, buf, True)

    # Return rows, cols
    return buf[0], buf[1]


@contextmanager
def alternate_screen(write):
    """ Draw in the alternate screen buffer, and restore the terminal after. """
    write(b'\033[?1049h')
    try:
        yield
    finally:
        write(b'\033[0m')  # Reset attributes
        write(b'\033[0 q')  # Default cursor shape
        write(b'\033[?25h')  # Make sure the cursor is visible again.
        write(b'\033[?1049l')  # Quit alternate screen buffer


# Key decoding.

_CSI_RE = re.compile(r'\x1b\[(\d*)(?:;(\d+))?([A-Za-z~])')
_SS3_RE = re.compile(r'\x1bO([A-Z])')

# The start of an escape sequence that may continue in the next read.
_INCOMPLETE_RE = re.compile(r'\x1b(?:\[\d*(?:;\d*)?|O)?\Z')

_LETTER_KEYS = {
    'A': 'ArrowUp',
    'B': 'ArrowDown',
    'C': 'ArrowRight',
    'D': 'ArrowLeft',
    'H': 'Home',
    'F': 'End',
    'P': 'F1',
    'Q': 'F2',
    'R': 'F3',
    'S': 'F4',
}

_TILDE_KEYS = {
    '1': 'Home',
    '2': 'Insert',
    '3': 'Delete',
    '4': 'End',
    '5': 'PageUp',
    '6': 'PageDown',
    '7': 'Home',
    '8': 'End',
    '15': 'F5',
    '17': 'F6',
    '18': 'F7',
    '19': 'F8',
    '20': 'F9',
    '21': 'F10',
    '23': 'F11',
    '24': 'F12',
}

_CONTROL_KEYS = {
    '\r': 'Enter',
    '\n': 'Enter',
    '\t': 'Tab',
    '\x7f': 'Backspace',
    '\x08': 'Backspace',
}


def _with_modifiers(key, param):
    """ Apply the xterm modifier parameter of a CSI sequence. """
    if not param:
        return KeyEvent(key)

    bits = int(param) - 1
    return KeyEvent(key, shift=bool(bits & 1), alt=bool(bits & 2),
                    ctrl=bool(bits & 4), meta=bool(bits & 8))


class KeyDecoder:
    """
    Turn the bytes that a terminal in raw mode sends into `KeyEvent`
    instances.

    An escape sequence can be split over two reads, so a trailing escape
    or an incomplete sequence is held back until the next `feed`. A lone
    Escape key press looks the same, so the caller calls `flush` when no
    more input arrives shortly after.
    """
    def __init__(self):
        self._decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        self._pending = ''

    @property
    def pending(self):
        """ True when an incomplete escape sequence is held back. """
        return bool(self._pending)

    def feed(self, data):
        return self.decode(self._pending + self._decoder.decode(data))

    def flush(self):
        """ Decode the held back input as it is. """
        return self.decode(self._pending, final=True)

    def decode(self, text, final=False):
        self._pending = ''
        result = []
        append = result.append
        i = 0

        while i < len(text):
            c = text[i]

            if c == '\x1b':
                match = _CSI_RE.match(text, i)
                if match:
                    event = self._csi(*match.groups())
                    if event:
                        append(event)
                    i = match.end()
                    continue

                match = _SS3_RE.match(text, i)
                if match and match.group(1) in _LETTER_KEYS:
                    append(KeyEvent(_LETTER_KEYS[match.group(1)]))
                    i = match.end()
                    continue

                if not final and _INCOMPLETE_RE.match(text, i):
                    self._pending = text[i:]
                    break

                # Escape followed by a key means Alt+key.
                if i + 1 < len(text) and text[i + 1] != '\x1b':
                    event = self._single(text[i + 1])
                    append(event._replace(alt=True))
                    i += 2
                    continue

                append(KeyEvent('Escape'))
                i += 1
                continue

            append(self._single(c))
            i += 1

        return result

    def _single(self, c):
        if c in _CONTROL_KEYS:
            return KeyEvent(_CONTROL_KEYS[c])
        elif c == '\x00':
            return KeyEvent(' ', ctrl=True)
        elif '\x01' <= c <= '\x1a':
            return KeyEvent(chr(ord(c) + 96), ctrl=True)
        elif '\x1c' <= c <= '\x1f':
            return KeyEvent(chr(ord(c) + 64), ctrl=True)
        else:
            return KeyEvent(c, shift=c.isupper())

    def _csi(self, number, param, final):
        if final == '~':
            key = _TILDE_KEYS.get(number)
        elif final == 'Z':
            return KeyEvent('Tab', shift=True)
        else:
            key = _LETTER_KEYS.get(final)

        if key is None:
            return None
        return _with_modifiers(key, param)
