import logging

__all__ = ('logger', 'setup_logging')

logger = logging.getLogger('nvui')


def setup_logging(filename, debug=False):
    """
    Send log output to a file. Stdout is owned by the renderer, so nothing
    should ever be logged there.
    """
    logfile = open(filename, 'w')
    logging.basicConfig(stream=logfile,
                        level=logging.DEBUG if debug else logging.INFO,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    return logfile
