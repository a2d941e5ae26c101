"""
A session is one connection to one editor process, together with the screen
model that mirrors its UI.
"""
from collections import defaultdict
from functools import partial

import asyncio

from .input import translate_key
from .log import logger
from .options import UI_OPTIONS, DEFAULT_WIDTH, DEFAULT_HEIGHT
from .rpc import RequestFailure
from .screen import Screen

__all__ = ('Session', 'SessionRegistry')


#: Global variables read from the editor on VimEnter.
FONT_VARIABLES = ('ui_font_multiplier_width', 'ui_font_multiplier_height')

#: User commands defined in the editor, and the notification they send us.
USER_COMMANDS = [
    ('NewGuiWindow', 'new-window'),
    ('QuitUI', 'quit-ui'),
    ('ReaderPageDown', 'reader-page-down'),
    ('ReaderPageUp', 'reader-page-up'),
    ('ReaderToggle', 'reader-toggle'),
]


class Session:
    """
    :param rpc: Connected `RPCProtocol`.
    :param adapter: `PaintAdapter` for the screen.
    """
    def __init__(self, rpc, adapter, width=DEFAULT_WIDTH, height=DEFAULT_HEIGHT, call_later=None):
        self.id = None
        self.rpc = rpc
        self.screen = Screen(adapter, call_later=call_later)
        self.width = width
        self.height = height

        self.channel_id = None
        self.attached = False
        self.global_variables = {}

        self._listeners = defaultdict(list)
        self._tasks = set()

        rpc.on('redraw', self.screen.apply)
        rpc.on('closed', self._connection_closed)
        rpc.on('error', partial(self.emit, 'error'))

        for _, event in USER_COMMANDS:
            rpc.on(event, partial(self.emit, event))

        rpc.register_handler('vimenter', self._vim_enter_request)

    def __repr__(self):
        return 'Session(id=%r, width=%r, height=%r)' % (self.id, self.width, self.height)

    # Events.

    def on(self, event, callback):
        self._listeners[event].append(callback)

    def emit(self, event, *args):
        for callback in list(self._listeners.get(event, ())):
            callback(*args)

    # Requests.

    def command(self, cmd):
        return self.rpc.request('nvim_command', cmd)

    def eval(self, expr):
        return self.rpc.request('nvim_eval', expr)

    async def attach(self):
        """
        Register as UI. The editor calls us back with 'vimenter' once it's
        done starting up.
        """
        self.channel_id, _ = await self.rpc.request('nvim_get_api_info')
        did_enter = await self.eval('v:vim_did_enter')

        await self.command("autocmd VimEnter * call rpcrequest(%i, 'vimenter')" % self.channel_id)
        await self.command('set termguicolors')
        await self.rpc.request('nvim_ui_attach', self.width, self.height, UI_OPTIONS)
        self.attached = True
        logger.info('Attached to channel %r (%ix%i)' % (self.channel_id, self.width, self.height))

        # Connecting to an editor that was already running.
        if did_enter:
            await self.enter()

    def _vim_enter_request(self):
        # Answer right away, the editor is blocked until we do.
        self._background(self.enter())

    async def enter(self):
        for name in FONT_VARIABLES:
            try:
                self.global_variables[name] = await self.rpc.request('nvim_get_var', name)
            except RequestFailure as e:
                logger.info('Failed to get variable %s: %s' % (name, e))

        self.emit('global-variables', dict(self.global_variables))

        for command, event in USER_COMMANDS:
            await self.command("command! %s call rpcnotify(%i, '%s')" % (
                command, self.channel_id, event))

    def resize(self, width, height):
        self.width = width
        self.height = height
        return self._send('nvim_ui_try_resize', width, height)

    def send_key(self, event):
        """ Send a `KeyEvent`. Returns None when the key has no input. """
        keys = translate_key(event)
        if keys:
            return self._send('nvim_input', keys)

    def send_mouse(self, event):
        """ Send a `MouseEvent`, unless the editor has the mouse disabled. """
        if self.screen.mouse_enabled:
            return self._send('nvim_input_mouse', *event)

    def repaint(self):
        """ Paint everything again, for instance after switching sessions. """
        self.screen.invalidate()
        self.screen.flush()

    def close(self):
        self.screen.cursor.cancel_blink()
        self.rpc.close()

    def _send(self, method, *params):
        """ Request for which nobody waits. Failures are logged. """
        future = self.rpc.request(method, *params)
        future.add_done_callback(partial(self._log_failure, method))
        return future

    def _log_failure(self, method, future):
        if not future.cancelled() and future.exception() is not None:
            logger.error('%s failed: %s' % (method, future.exception()))

    def _background(self, coroutine):
        task = asyncio.ensure_future(coroutine)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error('Background task failed: %r' % task.exception())

    def _connection_closed(self):
        logger.info('Connection of %r closed' % self)
        self.screen.cursor.cancel_blink()
        self.emit('closed')


class SessionRegistry:
    """
    All sessions of this process. `create` receives a factory, an async
    callable returning an unattached `Session`. The same factory is used for
    the sessions that the editor asks for with 'new-window'.

    The most recently created session is the active one. When it goes away,
    the last remaining session becomes active.
    """
    def __init__(self, on_focus=None, on_empty=None):
        self._on_focus = on_focus
        self._on_empty = on_empty
        self._counter = 0
        self._tasks = set()

        self.sessions = {}
        self.active = None

    def __len__(self):
        return len(self.sessions)

    def __iter__(self):
        return iter(list(self.sessions.values()))

    def __contains__(self, session_id):
        return session_id in self.sessions

    def get(self, session_id):
        return self.sessions.get(session_id)

    async def create(self, factory):
        session = await factory()

        self._counter += 1
        session.id = 'nvim%i' % self._counter
        self.sessions[session.id] = session
        logger.info('Created session %s' % session.id)

        session.on('new-window', partial(self._new_window, factory))
        session.on('quit-ui', self.quit_all)
        session.on('closed', partial(self.destroy, session.id))

        self._focus(session)

        try:
            await session.attach()
        except Exception:
            self.destroy(session.id)
            raise
        return session

    def destroy(self, session_id):
        session = self.sessions.pop(session_id, None)
        if session is None:
            return

        logger.info('Destroyed session %s' % session_id)
        session.close()

        if self.active is session:
            remaining = list(self.sessions.values())
            self._focus(remaining[-1] if remaining else None)

        if not self.sessions and self._on_empty:
            self._on_empty()

    def quit_all(self):
        """ Close every session. """
        for session_id in list(self.sessions):
            self.destroy(session_id)

    def _focus(self, session):
        self.active = session
        if session is not None and self._on_focus:
            self._on_focus(session)

    def _new_window(self, factory):
        task = asyncio.ensure_future(self.create(factory))
        self._tasks.add(task)
        task.add_done_callback(self._new_window_done)

    def _new_window_done(self, task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error('Could not create a new session: %r' % task.exception())
