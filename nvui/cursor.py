"""
Cursor presentation.

The remote process tells us where the cursor is (grid_cursor_goto) and how it
should look in every editor mode (mode_info_set, mode_change). This module
turns that into paint calls, and owns the blink timer.
"""
from collections import namedtuple

import asyncio

from .log import logger

__all__ = ('CursorStateMachine', 'CursorState', 'CursorMode', 'map_shape',
           'BLOCK', 'BAR', 'UNDERLINE')

BLOCK = 'block'
BAR = 'bar'
UNDERLINE = 'underline'

#: Highlight group which, when defined, always styles the cursor.
CURSOR_GROUP = 'Cursor'


def map_shape(remote_shape):
    """ Map the cursor_shape of a mode to how we draw it. """
    if remote_shape == 'horizontal':
        return UNDERLINE
    elif remote_shape == 'vertical':
        return BAR
    else:
        return BLOCK


class CursorMode(namedtuple('CursorMode',
        'name short_name shape blink_on blink_off blink_wait hl_id cell_percentage')):
    @classmethod
    def from_info(cls, info):
        # ext_linegrid sends the hl_attr_define id as attr_id. hl_id is the
        # syntax group id, only used when there is nothing else.
        hl_id = info.get('attr_id')
        if hl_id is None:
            hl_id = info.get('hl_id')

        return cls(
            name=info.get('name'),
            short_name=info.get('short_name'),
            shape=map_shape(info.get('cursor_shape')),
            blink_on=info.get('blinkon', 0),
            blink_off=info.get('blinkoff', 0),
            blink_wait=info.get('blinkwait', 0),
            hl_id=hl_id,
            cell_percentage=info.get('cell_percentage', 100))


class CursorState:
    def __init__(self):
        self.grid = 1
        self.row = 0
        self.col = 0
        self.visible = True
        self.shape = BLOCK
        self.blink_on = 0
        self.blink_off = 0
        self.blink_wait = 0
        self.cell_percentage = 100
        self.hl_id = None
        self.mode = None

    def __repr__(self):
        return 'CursorState(grid=%r, row=%r, col=%r, shape=%r, visible=%r)' % (
            self.grid, self.row, self.col, self.shape, self.visible)

    @property
    def position(self):
        return (self.grid, self.row, self.col)

    @property
    def blinking(self):
        return self.blink_on > 0 and self.blink_off > 0

    def snapshot(self):
        return (self.grid, self.row, self.col, self.shape)


def _call_later(delay, callback, *args):
    """
    Schedule on the running event loop. Without a running loop there is no
    way to blink, and the cursor stays steady.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return None
    return loop.call_later(delay, callback, *args)


class CursorStateMachine:
    """
    :param screen: `Screen` which owns the cells under the cursor.
    :param adapter: `PaintAdapter`.
    :param call_later: ``call_later(delay, callback, *args)`` returning a
        handle with a `cancel` method.
    """
    def __init__(self, screen, adapter, call_later=None):
        self.screen = screen
        self.adapter = adapter
        self.state = CursorState()
        self.style_enabled = False
        self.modes = []

        # Position where the cursor style was painted over a cell. This cell
        # has to be repainted on the next flush.
        self.painted_at = None

        self._call_later = call_later or _call_later
        self._timer = None

    @property
    def highlights(self):
        return self.screen.highlights

    @property
    def hl_id(self):
        """ Highlight used for the cursor. The cursor group wins. """
        group_id = self.highlights.group_id(CURSOR_GROUP)
        if group_id is not None:
            return group_id
        return self.state.hl_id

    # Transitions.

    def goto(self, grid, row, col):
        self.state.grid = grid
        self.state.row = row
        self.state.col = col

    def set_mode_info(self, enabled, mode_info):
        self.style_enabled = bool(enabled)
        self.modes = [CursorMode.from_info(info) for info in mode_info]

    def change_mode(self, name, index=None):
        if not self.style_enabled:
            return

        mode = self._find_mode(name, index)
        if mode is None:
            logger.warning('mode_change: unknown mode %r (%r)' % (name, index))
            return

        s = self.state
        s.mode = mode.name
        s.shape = mode.shape
        s.blink_on = mode.blink_on
        s.blink_off = mode.blink_off
        s.blink_wait = mode.blink_wait
        s.cell_percentage = mode.cell_percentage
        s.hl_id = mode.hl_id

    def _find_mode(self, name, index):
        if index is not None and 0 <= index < len(self.modes):
            return self.modes[index]

        for mode in self.modes:
            if mode.name == name:
                return mode

    def set_busy(self, busy):
        self.state.visible = not busy
        if busy:
            self.cancel_blink()

    # Presentation.

    def cursor_style(self, cell):
        """ Style of the cell under a block cursor. """
        highlights = self.highlights
        normal = highlights.resolve(cell.hl_id)
        cursor_hl = highlights.get(self.hl_id) if self.hl_id is not None else None

        # Without a cursor highlight, show the cell in reverse video.
        if cursor_hl is None or cursor_hl.reverse:
            style = normal._replace(foreground=normal.background,
                                    background=normal.foreground)
        else:
            default = highlights.default
            style = normal._replace(
                foreground=cursor_hl.foreground if cursor_hl.foreground is not None
                           else default.foreground,
                background=cursor_hl.background if cursor_hl.background is not None
                           else default.background)

        if cursor_hl is not None:
            style = style._replace(
                bold=cursor_hl.bold or normal.bold,
                italic=cursor_hl.italic or normal.italic,
                underline=cursor_hl.underline or normal.underline)
        return style

    def present(self):
        """
        Draw the cursor. Called after every flush, when all cells are up to
        date.
        """
        self.cancel_blink()
        self.painted_at = None

        s = self.state
        cell = self.screen.cell_at(s.grid, s.row, s.col)

        if not s.visible or cell is None:
            self.adapter.show_cursor(s, False)
            return

        row, col = s.row, s.col
        if cell.continuation and col > 0:
            col -= 1
            cell = self.screen.cell_at(s.grid, row, col)

        cursor_style = normal_style = None

        if s.shape == BLOCK:
            cursor_style = self.cursor_style(cell)
            normal_style = self.highlights.resolve(cell.hl_id)
            self.adapter.paint(s.grid, row, col, cursor_style, cell)
            self.painted_at = (s.grid, row, col)

        self.adapter.show_cursor(s, True)

        if s.blinking:
            self._arm_blink(s.snapshot(), (s.grid, row, col), cell,
                            cursor_style, normal_style)

    def cancel_blink(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    @property
    def blink_armed(self):
        return self._timer is not None

    def _arm_blink(self, snapshot, position, cell, cursor_style, normal_style, shown=True):
        self.cancel_blink()

        period = (self.state.blink_on + self.state.blink_off) / 1000.0
        self._timer = self._call_later(
            period, self._blink, snapshot, position, cell, cursor_style, normal_style, shown)

    def _blink(self, snapshot, position, cell, cursor_style, normal_style, shown):
        self._timer = None
        s = self.state

        # Cursor moved or changed shape. Leave things as they are, the next
        # flush will repaint.
        if s.snapshot() != snapshot or not s.visible:
            return

        shown = not shown
        grid, row, col = position

        if s.shape == BLOCK:
            self.adapter.paint(grid, row, col, cursor_style if shown else normal_style, cell)
            self.painted_at = position

        self.adapter.show_cursor(s, shown)
        self.adapter.present()

        self._arm_blink(snapshot, position, cell, cursor_style, normal_style, shown)
