"""
Screen model.

The remote process describes its screen as batches of redraw updates. Every
update is applied to the grid buffers right away, but nothing is painted
until the batch says 'flush'. At that point only the cells that changed since
the previous flush are handed to the paint adapter.
"""
from collections import namedtuple
from enum import Enum
import re

import wcwidth

from .cursor import CursorStateMachine
from .highlight import HighlightTable, DEFAULT_HL_ID
from .log import logger

__all__ = ('Screen', 'Grid', 'Cell', 'RedrawCommand', 'OutOfBounds', 'glyph_width')


class OutOfBounds(IndexError):
    """ A redraw update referenced a cell outside of the grid. """


class Cell(namedtuple('Cell', 'glyph hl_id width')):
    """
    One column slot of a grid. `width` is 1 or 2 for cells holding a glyph,
    and 0 for the right half of a double width glyph.
    """
    __slots__ = ()

    @property
    def continuation(self):
        return self.width == 0


BLANK = Cell(' ', DEFAULT_HL_ID, 1)


def continuation_cell(hl_id):
    return Cell('', hl_id, 0)


def glyph_width(glyph):
    """ Number of columns a glyph occupies: 1 or 2. """
    return 2 if wcwidth.wcswidth(glyph) >= 2 else 1


class Grid:
    def __init__(self, grid_id, columns=0, rows=0):
        self.id = grid_id
        self.columns = 0
        self.rows = 0

        # Size of one cell on the output device. Only a presentation hint.
        self.cell_width = 1
        self.cell_height = 1

        self.buffer = []
        self.resize(columns, rows)

    def __repr__(self):
        return 'Grid(id=%r, columns=%r, rows=%r)' % (self.id, self.columns, self.rows)

    def resize(self, columns, rows):
        """ Replace the buffer. All content is lost. """
        self.columns = columns
        self.rows = rows
        self.buffer = [[BLANK] * columns for _ in range(rows)]

    def in_bounds(self, row, col):
        return 0 <= row < self.rows and 0 <= col < self.columns

    def check(self, row, col):
        if not self.in_bounds(row, col):
            raise OutOfBounds('(%r, %r) is outside of %r' % (row, col, self))

    def get(self, row, col):
        self.check(row, col)
        return self.buffer[row][col]

    def set(self, row, col, cell):
        self.check(row, col)
        self.buffer[row][col] = cell

    def text(self, row):
        """ Visible text of one row, for debugging and tests. """
        return ''.join(cell.glyph for cell in self.buffer[row])


class RedrawCommand(Enum):
    GRID_RESIZE = 'grid_resize'
    GRID_CLEAR = 'grid_clear'
    GRID_CURSOR_GOTO = 'grid_cursor_goto'
    GRID_LINE = 'grid_line'
    GRID_SCROLL = 'grid_scroll'
    GRID_DESTROY = 'grid_destroy'
    HL_ATTR_DEFINE = 'hl_attr_define'
    HL_GROUP_SET = 'hl_group_set'
    DEFAULT_COLORS_SET = 'default_colors_set'
    MODE_INFO_SET = 'mode_info_set'
    MODE_CHANGE = 'mode_change'
    MOUSE_ON = 'mouse_on'
    MOUSE_OFF = 'mouse_off'
    OPTION_SET = 'option_set'
    SET_TITLE = 'set_title'
    SET_ICON = 'set_icon'
    BUSY_START = 'busy_start'
    BUSY_STOP = 'busy_stop'
    CHDIR = 'chdir'
    UPDATE_MENU = 'update_menu'
    WIN_VIEWPORT = 'win_viewport'
    FLUSH = 'flush'


_GUIFONT_RE = re.compile(r'([^:]+):h(\d+)')


class Screen:
    """
    Reduces redraw batches into grid state and paints dirty cells on flush.

    :param adapter: `PaintAdapter` that receives the paint calls.
    :param width_func: Callable returning the display width of a glyph.
    :param call_later: Scheduler for cursor blinking, see `CursorStateMachine`.
    """
    def __init__(self, adapter, width_func=glyph_width, call_later=None):
        self.adapter = adapter
        self.width_func = width_func

        self.grids = {1: Grid(1)}
        self.highlights = HighlightTable()
        self.dirty = set()  # (grid, row, col)

        self.cursor = CursorStateMachine(self, adapter, call_later=call_later)

        self.mouse_enabled = False
        self.busy = False
        self.title = ''
        self.options = {}
        self.font = None  # (name, size)
        self.viewport = None

        self._unknown_commands = set()

        handlers = {
            RedrawCommand.GRID_RESIZE: self.grid_resize,
            RedrawCommand.GRID_CLEAR: self.grid_clear,
            RedrawCommand.GRID_CURSOR_GOTO: self.grid_cursor_goto,
            RedrawCommand.GRID_LINE: self.grid_line,
            RedrawCommand.GRID_SCROLL: self.grid_scroll,
            RedrawCommand.GRID_DESTROY: self.grid_destroy,
            RedrawCommand.HL_ATTR_DEFINE: self.hl_attr_define,
            RedrawCommand.HL_GROUP_SET: self.hl_group_set,
            RedrawCommand.DEFAULT_COLORS_SET: self.default_colors_set,
            RedrawCommand.MODE_INFO_SET: self.mode_info_set,
            RedrawCommand.MODE_CHANGE: self.mode_change,
            RedrawCommand.MOUSE_ON: self.mouse_on,
            RedrawCommand.MOUSE_OFF: self.mouse_off,
            RedrawCommand.OPTION_SET: self.option_set,
            RedrawCommand.SET_TITLE: self.set_title,
            RedrawCommand.SET_ICON: self._ignore,
            RedrawCommand.BUSY_START: self.busy_start,
            RedrawCommand.BUSY_STOP: self.busy_stop,
            RedrawCommand.CHDIR: self._ignore,
            RedrawCommand.UPDATE_MENU: self._ignore,
            RedrawCommand.WIN_VIEWPORT: self.win_viewport,
            RedrawCommand.FLUSH: self.flush,
        }
        self._handlers = handlers

    # Batch processing.

    def apply(self, updates):
        """
        Apply one redraw batch: a list of ``(command, [args, args, ...])``
        pairs, in the order the remote process sent them.
        """
        for name, arg_tuples in updates:
            try:
                command = RedrawCommand(name)
            except ValueError:
                if name not in self._unknown_commands:
                    self._unknown_commands.add(name)
                    logger.warning('Unknown redraw command: %s' % name)
                continue

            handler = self._handlers[command]

            # Every argument tuple is a separate operation. One bad operation
            # should not cost us the rest of the batch.
            for args in arg_tuples or [[]]:
                try:
                    handler(*args)
                except OutOfBounds as e:
                    logger.error('%s: %s' % (name, e))
                except Exception:
                    logger.exception('Error in redraw command %s%r' % (name, tuple(args)))

    def _ignore(self, *args):
        pass

    def _grid(self, grid_id):
        try:
            return self.grids[grid_id]
        except KeyError:
            raise OutOfBounds('Unknown grid %r' % grid_id)

    def _mark(self, grid_id, row, col):
        self.dirty.add((grid_id, row, col))

    def cell_at(self, grid_id, row, col):
        """ Return the cell at this position or None when there is none. """
        grid = self.grids.get(grid_id)
        if grid is None or not grid.in_bounds(row, col):
            return None
        return grid.buffer[row][col]

    def style_at(self, grid_id, row, col):
        cell = self.cell_at(grid_id, row, col)
        return self.highlights.resolve(cell.hl_id if cell else DEFAULT_HL_ID)

    # Grid commands.

    def grid_resize(self, grid_id, columns, rows):
        if columns < 0 or rows < 0:
            raise OutOfBounds('Invalid grid size: columns=%r, rows=%r' % (columns, rows))

        grid = self.grids.get(grid_id)
        if grid is None:
            grid = self.grids[grid_id] = Grid(grid_id)
            grid.cell_width = self.grids[1].cell_width
            grid.cell_height = self.grids[1].cell_height

        grid.resize(columns, rows)

        # Drop what no longer exists, everything that does needs a repaint.
        self.dirty = set(d for d in self.dirty if d[0] != grid_id)
        self.dirty.update((grid_id, row, col) for row in range(rows) for col in range(columns))

    def grid_destroy(self, grid_id):
        if grid_id == 1:
            logger.error('grid_destroy: grid 1 cannot be destroyed.')
            return

        if self.grids.pop(grid_id, None) is not None:
            self.dirty = set(d for d in self.dirty if d[0] != grid_id)

    def grid_clear(self, grid_id, top=None, bottom=None, left=None, right=None):
        grid = self._grid(grid_id)

        if top is None:
            top, bottom, left, right = 0, grid.rows, 0, grid.columns

        if top < 0 or left < 0 or bottom > grid.rows or right > grid.columns:
            logger.error('grid_clear: region (%r, %r, %r, %r) is out of bounds for %r' %
                         (top, bottom, left, right, grid))
            top, left = max(top, 0), max(left, 0)
            bottom, right = min(bottom, grid.rows), min(right, grid.columns)

        for row in range(top, bottom):
            for col in range(left, right):
                grid.buffer[row][col] = BLANK
                self._mark(grid_id, row, col)

    def grid_cursor_goto(self, grid_id, row, col):
        self.cursor.goto(grid_id, row, col)

    def grid_line(self, grid_id, row, col_start, cells, wrap=False):
        grid = self._grid(grid_id)
        if not 0 <= row < grid.rows:
            raise OutOfBounds('grid_line: row %r is outside of %r' % (row, grid))

        col = col_start
        hl_id = DEFAULT_HL_ID
        continuation_pending = False

        for entry in cells:
            glyph = entry[0] if entry and isinstance(entry[0], str) and entry[0] else ' '
            if len(entry) > 1 and entry[1] is not None:
                hl_id = entry[1]
            repeat = entry[2] if len(entry) > 2 else 1

            for _ in range(repeat):
                if not 0 <= col < grid.columns:
                    raise OutOfBounds('grid_line: column %r is outside of %r' % (col, grid))

                self._mark(grid_id, row, col)

                if continuation_pending:
                    self._put_continuation(grid, row, col, hl_id)
                    continuation_pending = False
                else:
                    width = self.width_func(glyph)
                    self._put(grid, row, col, Cell(glyph, hl_id, width))

                    if width == 2:
                        if col + 1 < grid.columns:
                            self._put_continuation(grid, row, col + 1, hl_id)
                        continuation_pending = True
                col += 1

    def _put(self, grid, row, col, cell):
        """
        Write a glyph cell. When this breaks up a double width glyph, the
        half that stays behind becomes a blank.
        """
        line = grid.buffer[row]
        old = line[col]

        if old.continuation and col > 0 and line[col - 1].width == 2:
            line[col - 1] = Cell(' ', line[col - 1].hl_id, 1)
            self._mark(grid.id, row, col - 1)

        self._drop_orphan(grid, row, col)
        line[col] = cell

    def _put_continuation(self, grid, row, col, hl_id):
        """ Write the right half of a double width glyph. """
        self._drop_orphan(grid, row, col)
        grid.buffer[row][col] = continuation_cell(hl_id)
        self._mark(grid.id, row, col)

    def _drop_orphan(self, grid, row, col):
        # The right half of a double width glyph at `col` is about to lose
        # its left half.
        line = grid.buffer[row]
        if line[col].width == 2 and col + 1 < grid.columns and line[col + 1].continuation:
            line[col + 1] = Cell(' ', line[col + 1].hl_id, 1)
            self._mark(grid.id, row, col + 1)

    def grid_scroll(self, grid_id, top, bottom, left, right, rows, cols=0):
        """
        Move a region. Positive `rows` moves the content up (the source lies
        below the destination), negative moves it down. Same for `cols`.
        """
        grid = self._grid(grid_id)

        if top < 0 or left < 0 or bottom > grid.rows or right > grid.columns:
            logger.error('grid_scroll: region (%r, %r, %r, %r) is out of bounds for %r' %
                         (top, bottom, left, right, grid))
            top, left = max(top, 0), max(left, 0)
            bottom, right = min(bottom, grid.rows), min(right, grid.columns)

        buffer = grid.buffer

        # The iteration direction makes sure that we never read a cell that
        # was already overwritten by this same scroll.
        if rows > 0:
            destinations = range(top, bottom - rows)
        elif rows < 0:
            destinations = range(bottom - 1, top - rows - 1, -1)
        else:
            destinations = ()

        for dest in destinations:
            src = dest + rows
            for col in range(left, right):
                buffer[dest][col] = buffer[src][col]
                self._mark(grid_id, dest, col)

        if cols > 0:
            destinations = range(left, right - cols)
        elif cols < 0:
            destinations = range(right - 1, left - cols - 1, -1)
        else:
            destinations = ()

        if cols:
            for row in range(top, bottom):
                for dest in destinations:
                    buffer[row][dest] = buffer[row][dest + cols]
                    self._mark(grid_id, row, dest)

    # Highlights.

    def default_colors_set(self, foreground, background, special, *cterm_colors):
        self.highlights.set_default_colors(foreground, background, special)

        # Every cell may fall back to these colours.
        self.invalidate()

    def hl_attr_define(self, hl_id, rgb_attrs, cterm_attrs=None, info=None):
        self.highlights.define(hl_id, rgb_attrs, info)

    def hl_group_set(self, name, hl_id):
        self.highlights.set_group(name, hl_id)

    # Cursor.

    def mode_info_set(self, enabled, mode_info):
        self.cursor.set_mode_info(enabled, mode_info)

    def mode_change(self, mode_name, mode_index=None):
        self.cursor.change_mode(mode_name, mode_index)

    def busy_start(self):
        self.busy = True
        self.cursor.set_busy(True)

    def busy_stop(self):
        self.busy = False
        self.cursor.set_busy(False)

    # Misc.

    def mouse_on(self, *args):
        self.mouse_enabled = True

    def mouse_off(self, *args):
        self.mouse_enabled = False

    def option_set(self, name, value):
        self.options[name] = value

        if name == 'guifont' and value:
            match = _GUIFONT_RE.match(value)
            if match:
                self.font = (match.group(1), int(match.group(2)))
            else:
                logger.error('Could not parse guifont: %r' % value)

    def set_title(self, title):
        self.title = title or 'Neovim'
        self.adapter.set_title(self.title)

    def win_viewport(self, *args):
        self.viewport = args

    # Painting.

    def invalidate(self):
        """ Mark every cell of every grid dirty. """
        for grid in self.grids.values():
            self.dirty.update((grid.id, row, col)
                              for row in range(grid.rows) for col in range(grid.columns))

    def flush(self):
        """
        Paint every dirty cell, then the cursor. Continuation cells are
        never painted themselves, the double width glyph in front of them is
        painted instead.
        """
        coordinates = set()
        pending = set(self.dirty)

        stale = self.cursor.painted_at
        if stale is not None:
            pending.add(stale)

        for grid_id, row, col in pending:
            cell = self.cell_at(grid_id, row, col)
            if cell is None:
                continue
            if cell.continuation:
                if col == 0:
                    continue
                col -= 1
            coordinates.add((grid_id, row, col))

        for grid_id, row, col in sorted(coordinates):
            cell = self.grids[grid_id].buffer[row][col]
            if cell.continuation:
                continue
            self.adapter.paint(grid_id, row, col, self.highlights.resolve(cell.hl_id), cell)

        self.dirty.clear()

        self.cursor.present()
        self.adapter.present()
