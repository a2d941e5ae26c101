"""
Run the UI inside the terminal that it was started from.
"""
from asyncio.protocols import BaseProtocol, Protocol
from functools import partial

import asyncio
import os
import signal
import sys

from .log import logger
from .options import DEFAULT_WIDTH, DEFAULT_HEIGHT, ESCAPE_TIMEOUT
from .renderer import TerminalRenderer
from .session import Session, SessionRegistry
from .terminal import raw_mode, get_size, alternate_screen, KeyDecoder
from .transports import spawn, connect_socket, exec_in_container

__all__ = ('TerminalFrontEnd', 'start_standalone')


class InputProtocol(Protocol):
    """ Read key strokes from stdin. """
    def __init__(self, frontend, call_later=None):
        self.frontend = frontend
        self.decoder = KeyDecoder()
        self._call_later = call_later
        self._flush_timer = None

    def data_received(self, data):
        if self._flush_timer is not None:
            self._flush_timer.cancel()
            self._flush_timer = None

        self._send(self.decoder.feed(data))

        if self.decoder.pending:
            call_later = self._call_later or asyncio.get_running_loop().call_later
            self._flush_timer = call_later(ESCAPE_TIMEOUT, self._flush)

    def _flush(self):
        self._flush_timer = None
        self._send(self.decoder.flush())

    def _send(self, events):
        for event in events:
            self.frontend.send_key(event)

    def connection_lost(self, exc):
        if self._flush_timer is not None:
            self._flush_timer.cancel()
        logger.info('Input closed.')
        self.frontend.registry.quit_all()


class TerminalFrontEnd:
    """
    Show the active session in the terminal. Every session has its own
    renderer, but only the active one gets to write.

    :param options: `Options` instance.
    :param write: Callable that receives the output bytes.
    :param size_func: Callable returning the terminal size as (rows, cols).
    """
    def __init__(self, options, write, size_func):
        self.options = options
        self.write = write
        self.size_func = size_func

        self.registry = SessionRegistry(on_focus=self._focus, on_empty=self._empty)
        self.done = asyncio.get_running_loop().create_future()

    @property
    def size(self):
        """ (width, height) for the sessions. """
        try:
            rows, cols = self.size_func()
        except OSError:
            rows, cols = 0, 0

        return (self.options.width or cols or DEFAULT_WIDTH,
                self.options.height or rows or DEFAULT_HEIGHT)

    def connect(self):
        if self.options.transport == 'socket':
            return connect_socket(self.options.target)
        elif self.options.transport == 'container':
            return exec_in_container(self.options.target)
        else:
            return spawn(self.options.args)

    async def start(self):
        await self.registry.create(self._create_session)

    async def _create_session(self):
        rpc = await self.connect()
        session = None

        def write(data):
            if self.registry.active is session:
                self.write(data)

        width, height = self.size
        session = Session(rpc, TerminalRenderer(write, self.options.colors), width, height)
        session.on('error', lambda e: logger.error('%r: %s' % (session, e)))
        return session

    def send_key(self, event):
        session = self.registry.active
        if session is not None and session.attached:
            session.send_key(event)

    def update_size(self):
        """ Called on SIGWINCH. """
        width, height = self.size

        for session in self.registry:
            if session.attached and (session.width, session.height) != (width, height):
                session.resize(width, height)

    def _focus(self, session):
        logger.info('Focus %r' % session)
        self.write(b'\033[0m\033[2J')
        session.repaint()
        self.update_size()

    def _empty(self):
        if not self.done.done():
            self.done.set_result(None)


async def run(options):
    loop = asyncio.get_running_loop()

    # Output transport/protocol
    output_transport, output_protocol = await loop.connect_write_pipe(
                    BaseProtocol, os.fdopen(sys.stdout.fileno(), 'wb', 0))

    with raw_mode(sys.stdin):
        with alternate_screen(output_transport.write):
            frontend = TerminalFrontEnd(options, output_transport.write,
                                        partial(get_size, sys.stdin.fileno()))

            # Handle resize events
            loop.add_signal_handler(signal.SIGWINCH, frontend.update_size)

            # Input transport/protocol
            input_transport, input_protocol = await loop.connect_read_pipe(
                            lambda: InputProtocol(frontend), sys.stdin)
            try:
                await frontend.start()
                await frontend.done
            finally:
                loop.remove_signal_handler(signal.SIGWINCH)
                input_transport.close()


def start_standalone(options):
    asyncio.run(run(options))
