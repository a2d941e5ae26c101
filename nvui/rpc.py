"""
msgpack-RPC multiplexer.

Three message kinds share one byte stream:

    [0, msgid, method, params]   request
    [1, msgid, error, result]    response
    [2, method, params]          notification

Requests that we send are kept in a pending table until the response with
the same id arrives. Remote requests are answered through registered
handlers, and notifications are passed to event subscribers in the order
they arrive.
"""
from collections import defaultdict

import asyncio
import inspect

from .codec import Decoder, DecodeError, encode
from .log import logger

__all__ = (
    'RPCProtocol',
    'SubprocessRPCProtocol',
    'RequestFailure',
    'TransportClosed',
    'REQUEST',
    'RESPONSE',
    'NOTIFICATION',
)

REQUEST = 0
RESPONSE = 1
NOTIFICATION = 2


class RequestFailure(Exception):
    """
    The remote process answered a request with an error. The remote error
    object is usually a ``[type, message]`` pair.
    """
    def __init__(self, error):
        self.error = error

        if isinstance(error, (list, tuple)) and len(error) == 2:
            message = error[1]
        else:
            message = error
        super().__init__(message)


class TransportClosed(Exception):
    """ The byte stream is gone. """


class RPCProtocol(asyncio.Protocol):
    """
    Protocol which multiplexes requests, responses and notifications over a
    single transport.
    """
    def __init__(self):
        self.transport = None
        self.closed = False

        self._next_id = 0
        self._pending = {}  # msgid -> Future
        self._handlers = {}  # method -> callable
        self._listeners = defaultdict(list)
        self._decoder = Decoder()

    # asyncio.Protocol interface.

    def connection_made(self, transport):
        self.transport = transport

    def data_received(self, data):
        if self.closed:
            return

        self._decoder.feed(data)
        try:
            for message in self._decoder:
                try:
                    self._dispatch(message)
                except Exception:
                    # One bad message or callback should not stop the stream.
                    logger.exception('Error while dispatching %r' % (message, ))
        except DecodeError as e:
            logger.error('Decode error, closing connection: %s' % e)
            self.emit('error', e)
            self.close()

    def connection_lost(self, exc):
        if exc is not None:
            logger.error('Connection lost: %r' % exc)
        self._set_closed()

    # Events.

    def on(self, event, callback):
        """ Subscribe `callback` to a named event. """
        self._listeners[event].append(callback)

    def off(self, event, callback):
        try:
            self._listeners[event].remove(callback)
        except ValueError:
            pass

    def emit(self, event, *args):
        for callback in list(self._listeners.get(event, ())):
            callback(*args)

    def register_handler(self, method, handler):
        """
        Answer remote requests for `method` with `handler`. The handler
        receives the request params as positional arguments and may be a
        coroutine function.
        """
        self._handlers[method] = handler

    # Outgoing messages.

    def request(self, method, *params):
        """
        Send a request and return a future for its result. The future fails
        with `RequestFailure` when the remote process returns an error.
        There is no timeout: when the connection closes, the future stays
        pending.
        """
        if self.closed or self.transport is None:
            raise TransportClosed('Cannot send %r, connection is closed.' % method)

        future = asyncio.get_running_loop().create_future()
        msgid = self._next_id
        self._next_id += 1
        self._pending[msgid] = future

        self._write([REQUEST, msgid, method, list(params)])
        return future

    def notify(self, method, *params):
        if self.closed or self.transport is None:
            raise TransportClosed('Cannot send %r, connection is closed.' % method)

        self._write([NOTIFICATION, method, list(params)])

    def close(self):
        if self.transport is not None and not self.closed:
            self.transport.close()
        self._set_closed()

    @property
    def pending_count(self):
        return len(self._pending)

    def _write(self, message):
        self.transport.write(encode(message))

    def _set_closed(self):
        if not self.closed:
            self.closed = True
            if self._pending:
                logger.info('Connection closed with %i pending requests.' % len(self._pending))
            self.emit('closed')

    # Incoming messages.

    def _dispatch(self, message):
        if not isinstance(message, (list, tuple)) or not message:
            logger.error('Dropping malformed message: %r' % (message, ))
            return

        kind = message[0]

        if kind == REQUEST and len(message) == 4:
            self._handle_request(*message[1:])

        elif kind == RESPONSE and len(message) == 4:
            self._handle_response(*message[1:])

        elif kind == NOTIFICATION and len(message) == 3 and isinstance(message[2], (list, tuple)):
            self._handle_notification(*message[1:])

        else:
            logger.error('Dropping malformed message: %r' % (message, ))

    def _handle_request(self, msgid, method, params):
        if not isinstance(params, (list, tuple)):
            logger.error('Invalid params for request %r: %r' % (method, params))
            self._respond(msgid, 'Invalid params for request %r' % (method, ), None)
            return

        handler = self._handlers.get(method)

        if handler is None:
            logger.warning('Unknown request method: %s' % method)
            self._respond(msgid, 'Unknown request method: %s' % method, None)
            return

        try:
            result = handler(*params)
        except Exception as e:
            logger.exception('Request handler %r failed' % method)
            self._respond(msgid, str(e), None)
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            task.add_done_callback(lambda t: self._respond_with_task(msgid, method, t))
        else:
            self._respond(msgid, None, result)

    def _respond_with_task(self, msgid, method, task):
        if task.cancelled():
            self._respond(msgid, 'Request %r was cancelled' % method, None)
        elif task.exception() is not None:
            logger.error('Request handler %r failed: %r' % (method, task.exception()))
            self._respond(msgid, str(task.exception()), None)
        else:
            self._respond(msgid, None, task.result())

    def _respond(self, msgid, error, result):
        if self.closed:
            return
        self._write([RESPONSE, msgid, error, result])

    def _handle_response(self, msgid, error, result):
        future = self._pending.pop(msgid, None)

        if future is None:
            logger.warning('Response for unknown request id %r dropped.' % msgid)
            return

        if future.cancelled():
            return

        if error is not None:
            future.set_exception(RequestFailure(error))
        else:
            future.set_result(result)

    def _handle_notification(self, method, params):
        if method == 'redraw':
            # Every update is [command, args1, args2, ...]. Keep the order.
            updates = []
            for update in params:
                if isinstance(update, (list, tuple)) and update:
                    updates.append((update[0], list(update[1:])))
                else:
                    logger.error('Dropping malformed redraw update: %r' % (update, ))
            self.emit('redraw', updates)
        else:
            if not self._listeners.get(method):
                logger.warning('Unhandled notification: %s' % method)
            self.emit(method, *params)


class SubprocessRPCProtocol(asyncio.SubprocessProtocol):
    """
    Run the RPC protocol over the stdin/stdout pipes of a child process.
    """
    def __init__(self, rpc=None):
        self.rpc = rpc or RPCProtocol()
        self.transport = None

    def connection_made(self, transport):
        self.transport = transport
        self.rpc.connection_made(transport.get_pipe_transport(0))

    def pipe_data_received(self, fd, data):
        if fd == 1:
            self.rpc.data_received(data)
        else:
            logger.info('stderr: %s' % data.decode('utf-8', 'replace').rstrip())

    def process_exited(self):
        logger.info('Process exited, returncode=%r' % self.transport.get_returncode())
        self.rpc.connection_lost(None)
