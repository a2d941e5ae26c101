"""
Paint adapters.

The screen model never draws anything itself. During a flush it calls
`PaintAdapter.paint` for every cell that changed, and the cursor state machine
calls it once more for the cell under a block cursor.
"""
import pyte.graphics

from .cursor import BLOCK, BAR, UNDERLINE
from .log import logger

__all__ = ('PaintAdapter', 'TerminalRenderer', 'nearest_256_colour')


class PaintAdapter:
    """
    Interface between the screen model and whatever shows it.
    """
    def paint(self, grid, row, col, style, cell):
        """
        Show `cell` at (row, col) of `grid` using the `ResolvedStyle`
        `style`. `cell.width` tells whether the glyph covers one or two
        columns. Continuation cells are never passed in.
        """
        raise NotImplementedError

    def show_cursor(self, cursor, visible):
        """ Show or hide the cursor overlay, `cursor` is a `CursorState`. """

    def set_title(self, title):
        pass

    def present(self):
        """ Called when a flush or a cursor blink is complete. """


# SGR codes, taken from the table that pyte uses for parsing them.
_SGR = dict((v, k) for k, v in pyte.graphics.TEXT.items())

_STYLE_ATTRIBUTES = [
    ('bold', _SGR['+bold']),
    ('italic', _SGR['+italics']),
    ('underline', _SGR['+underscore']),
    ('undercurl', _SGR['+underscore']),
    ('strikethrough', _SGR['+strikethrough']),
]

_PALETTE_256 = [int(entry, 16) for entry in pyte.graphics.FG_BG_256]

# Steady DECSCUSR shapes. Blinking is done by the cursor state machine.
_CURSOR_SHAPES = {
    UNDERLINE: 4,
    BAR: 6,
}


def _split_rgb(colour):
    return (colour >> 16) & 0xff, (colour >> 8) & 0xff, colour & 0xff


_nearest_cache = {}


def nearest_256_colour(colour):
    """ Index of the xterm-256 palette entry closest to a 24-bit colour. """
    try:
        return _nearest_cache[colour]
    except KeyError:
        pass

    r, g, b = _split_rgb(colour)

    def distance(index):
        pr, pg, pb = _split_rgb(_PALETTE_256[index])
        return (pr - r) ** 2 + (pg - g) ** 2 + (pb - b) ** 2

    # Skip the first 16 entries, terminals tend to redefine them.
    result = min(range(16, len(_PALETTE_256)), key=distance)
    _nearest_cache[colour] = result
    return result


class TerminalRenderer(PaintAdapter):
    """
    Paint into a terminal with ANSI escape sequences. Only grid 1 is shown.

    :param write: Callable that receives the output bytes.
    :param colors: 'truecolor' or '256'.
    """
    def __init__(self, write, colors='truecolor'):
        if colors not in ('truecolor', '256'):
            raise ValueError('colors should be truecolor or 256, got %r' % (colors, ))
        self._write = write
        self.colors = colors
        self._buffer = []
        self._sgr_cache = {}

    def paint(self, grid, row, col, style, cell):
        if grid != 1:
            return

        write = self._buffer.append
        write('\033[%i;%iH' % (row + 1, col + 1))
        write(self._sgr(style))
        write(cell.glyph)

    def show_cursor(self, cursor, visible):
        write = self._buffer.append

        # A block cursor has been painted into the cell already.
        if visible and cursor.grid == 1 and cursor.shape != BLOCK:
            write('\033[%i;%iH' % (cursor.row + 1, cursor.col + 1))
            write('\033[%i q' % _CURSOR_SHAPES[cursor.shape])
            write('\033[?25h')
        else:
            write('\033[?25l')

    def set_title(self, title):
        self._buffer.append('\033]2;%s\007' % title)

    def present(self):
        if not self._buffer:
            return

        # Hide the cursor while drawing.
        data = '\033[?25l' + ''.join(self._buffer)
        self._buffer = []

        try:
            self._write(data.encode('utf-8'))
        except Exception as e:
            logger.error('Writing output failed: %r' % e)

    def _sgr(self, style):
        try:
            return self._sgr_cache[style]
        except KeyError:
            pass

        codes = ['0']
        for name, code in _STYLE_ATTRIBUTES:
            if getattr(style, name) and str(code) not in codes:
                codes.append(str(code))

        if style.foreground is not None:
            codes.append(self._colour(38, style.foreground))
        if style.background is not None:
            codes.append(self._colour(48, style.background))

        result = '\033[%sm' % ';'.join(codes)
        self._sgr_cache[style] = result
        return result

    def _colour(self, base, colour):
        if self.colors == 'truecolor':
            return '%i;2;%i;%i;%i' % ((base, ) + _split_rgb(colour))
        else:
            return '%i;5;%i' % (base, nearest_256_colour(colour))
