"""
Highlight table.

Highlight 0 holds the default colours. Every other highlight only carries the
attributes the remote process sent for it; missing colours are taken from
highlight 0 when the style is resolved.
"""
from collections import namedtuple

from .log import logger

__all__ = ('Highlight', 'ResolvedStyle', 'HighlightTable', 'DEFAULT_HL_ID')

DEFAULT_HL_ID = 0

_FLAGS = ('bold', 'italic', 'underline', 'reverse', 'strikethrough', 'undercurl')


class Highlight(namedtuple('Highlight', 'foreground background special ' + ' '.join(_FLAGS))):
    """ Attributes of one highlight id. Colours are 24-bit integers or None. """
    @classmethod
    def from_attrs(cls, attrs):
        attrs = attrs or {}
        return cls(
            foreground=attrs.get('foreground'),
            background=attrs.get('background'),
            special=attrs.get('special'),
            **dict((name, bool(attrs.get(name, False))) for name in _FLAGS))


EMPTY_HIGHLIGHT = Highlight.from_attrs({})


# What the paint adapter receives. `None` colours mean: use the default of
# the output device.
ResolvedStyle = namedtuple('ResolvedStyle', [
    'foreground', 'background', 'special',
    'bold', 'italic', 'underline', 'strikethrough', 'undercurl'])


def _colour(value):
    # default_colors_set sends -1 for colours that are not set.
    if value is None or value < 0:
        return None
    return value


class HighlightTable:
    def __init__(self):
        self._highlights = {DEFAULT_HL_ID: EMPTY_HIGHLIGHT}
        self._info = {}
        self.groups = {}  # Group name -> highlight id.

    @property
    def default(self):
        return self._highlights[DEFAULT_HL_ID]

    def set_default_colors(self, foreground, background, special):
        self._highlights[DEFAULT_HL_ID] = EMPTY_HIGHLIGHT._replace(
            foreground=_colour(foreground),
            background=_colour(background),
            special=_colour(special))

    def define(self, hl_id, attrs, info=None):
        if hl_id == DEFAULT_HL_ID:
            logger.error('hl_attr_define: id 0 is expected to come from default_colors_set.')
            return

        self._highlights[hl_id] = Highlight.from_attrs(attrs)
        self._info[hl_id] = info or []

    def set_group(self, name, hl_id):
        self.groups[name] = hl_id

    def group_id(self, name):
        return self.groups.get(name)

    def get(self, hl_id):
        return self._highlights.get(hl_id)

    def info(self, hl_id):
        """ The ext_hlstate info entries for this highlight. """
        return self._info.get(hl_id, [])

    def __contains__(self, hl_id):
        return hl_id in self._highlights

    def resolve(self, hl_id):
        """
        Turn a highlight id into a `ResolvedStyle`. Unknown ids resolve like
        highlight 0.
        """
        default = self.default
        hl = self._highlights.get(hl_id, default)
        return self.resolve_highlight(hl)

    def resolve_highlight(self, hl):
        default = self.default

        foreground = hl.foreground if hl.foreground is not None else default.foreground
        background = hl.background if hl.background is not None else default.background
        special = hl.special if hl.special is not None else default.special

        if hl.reverse:
            foreground, background = background, foreground

        return ResolvedStyle(
            foreground=foreground,
            background=background,
            special=special,
            bold=hl.bold,
            italic=hl.italic,
            underline=hl.underline,
            strikethrough=hl.strikethrough,
            undercurl=hl.undercurl)
