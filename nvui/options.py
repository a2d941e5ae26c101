from collections import namedtuple

__all__ = (
    'NVIM_COMMAND',
    'DEFAULT_SOCKET_PATH',
    'DEFAULT_CONTAINER',
    'DEFAULT_WIDTH',
    'DEFAULT_HEIGHT',
    'DEFAULT_LOG_FILE',
    'ESCAPE_TIMEOUT',
    'UI_OPTIONS',
    'Options',
)

NVIM_COMMAND = 'nvim'
DEFAULT_SOCKET_PATH = '/tmp/nvim.sock'
DEFAULT_CONTAINER = 'devcontainer'
DEFAULT_LOG_FILE = '/tmp/nvui-log'

# Grid size requested on attach, before we know the real size.
DEFAULT_WIDTH = 100
DEFAULT_HEIGHT = 60

# Seconds to wait for the rest of an escape sequence before reading a
# lone escape byte as the Escape key.
ESCAPE_TIMEOUT = .05

# Capabilities passed to nvim_ui_attach.
UI_OPTIONS = {
    'rgb': True,
    'override': False,
    'ext_cmdline': False,
    'ext_hlstate': True,
    'ext_linegrid': True,
    'ext_messages': False,
    'ext_multigrid': False,
    'ext_popupmenu': False,
    'ext_tabline': False,
    'ext_termcolors': False,
}


Options = namedtuple('Options', [
    'transport',    # 'spawn', 'socket' or 'container'
    'target',       # socket path or container name
    'args',         # extra editor arguments when spawning
    'width',
    'height',
    'colors',       # 'truecolor' or '256'
    'log_file',
    'debug',
])
