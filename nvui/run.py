"""Usage:
  nvui [options] [--] [<args>...]
  nvui --socket=<path> [options]
  nvui --container=<name> [options]

Start an embedded editor (passing <args> to it), connect to one listening on
a unix socket, or start one inside a running container.

Options:
  --width=<columns>   Grid width. Defaults to the terminal width.
  --height=<rows>     Grid height. Defaults to the terminal height.
  --colors=<mode>     'truecolor' or '256'. [default: truecolor]
  --log=<file>        Log file. [default: /tmp/nvui-log]
  --debug             Log debug messages.
  -h --help           Show this screen.
  --version           Show the version.
"""
import sys

import docopt

from nvui import __version__
from nvui.log import logger, setup_logging
from nvui.options import Options
from nvui.standalone import start_standalone

__all__ = ('start', 'parse_options')


def _positive_int(arguments, name):
    value = arguments[name]
    if value is None:
        return None
    try:
        result = int(value)
    except ValueError:
        result = 0
    if result <= 0:
        raise docopt.DocoptExit('%s should be a positive number, got %r' % (name, value))
    return result


def parse_options(arguments):
    """
    Turn the dictionary that docopt returns into an `Options` instance.
    """
    if arguments['--colors'] not in ('truecolor', '256'):
        raise docopt.DocoptExit("--colors should be 'truecolor' or '256'")

    if arguments['--socket']:
        transport, target = 'socket', arguments['--socket']
    elif arguments['--container']:
        transport, target = 'container', arguments['--container']
    else:
        transport, target = 'spawn', None

    return Options(
        transport=transport,
        target=target,
        args=arguments['<args>'],
        width=_positive_int(arguments, '--width'),
        height=_positive_int(arguments, '--height'),
        colors=arguments['--colors'],
        log_file=arguments['--log'],
        debug=arguments['--debug'])


def start(argv=None):
    """
    Entry point for the nvui command.
    """
    a = docopt.docopt(__doc__, argv=argv, version=__version__)
    options = parse_options(a)

    setup_logging(options.log_file, options.debug)
    logger.info('Starting with %r' % (options, ))

    try:
        start_standalone(options)
    except Exception as e:
        logger.exception('Error')
        sys.stderr.write('nvui: %s\n' % e)
        sys.exit(1)

    logger.info('Normal Quit')


if __name__ == '__main__':
    start()
