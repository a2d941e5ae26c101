from collections import defaultdict

import asyncio

import pytest

from nvui.input import KeyEvent, MouseEvent
from nvui.options import UI_OPTIONS
from nvui.renderer import PaintAdapter
from nvui.rpc import RequestFailure
from nvui.session import Session, SessionRegistry


class FakeRPC:
    """
    Stands in for `RPCProtocol`. Requests are answered right away from
    `results`: a value, an exception, or a callable receiving the params.
    """
    def __init__(self, results=None):
        self.requests = []
        self.handlers = {}
        self.listeners = defaultdict(list)
        self.closed = False
        self.results = {
            'nvim_get_api_info': [3, {}],
            'nvim_eval': 0,
        }
        self.results.update(results or {})

    def on(self, event, callback):
        self.listeners[event].append(callback)

    def emit(self, event, *args):
        for callback in list(self.listeners[event]):
            callback(*args)

    def register_handler(self, method, handler):
        self.handlers[method] = handler

    def request(self, method, *params):
        self.requests.append((method, ) + params)
        future = asyncio.get_running_loop().create_future()

        result = self.results.get(method)
        if callable(result):
            result = result(*params)

        if isinstance(result, Exception):
            future.set_exception(result)
        else:
            future.set_result(result)
        return future

    def close(self):
        if not self.closed:
            self.closed = True
            self.emit('closed')

    def methods(self):
        return [r[0] for r in self.requests]


class NullAdapter(PaintAdapter):
    def paint(self, grid, row, col, style, cell):
        pass


def _no_timer(delay, callback, *args):
    return None


def _session(results=None, width=80, height=24):
    rpc = FakeRPC(results)
    return Session(rpc, NullAdapter(), width, height, call_later=_no_timer), rpc


async def _settle():
    for _ in range(10):
        await asyncio.sleep(0)


def test_attach():
    async def run():
        session, rpc = _session()
        await session.attach()
        return session, rpc

    session, rpc = asyncio.run(run())

    assert rpc.requests == [
        ('nvim_get_api_info', ),
        ('nvim_eval', 'v:vim_did_enter'),
        ('nvim_command', "autocmd VimEnter * call rpcrequest(3, 'vimenter')"),
        ('nvim_command', 'set termguicolors'),
        ('nvim_ui_attach', 80, 24, UI_OPTIONS),
    ]
    assert session.attached
    assert session.channel_id == 3
    assert UI_OPTIONS['ext_linegrid'] and UI_OPTIONS['rgb'] and UI_OPTIONS['ext_hlstate']
    assert not UI_OPTIONS['ext_multigrid']


def _get_var(name):
    if name == 'ui_font_multiplier_width':
        return 1.2
    return RequestFailure([0, 'Key not found: %s' % name])


def test_vimenter_request():
    async def run():
        session, rpc = _session({'nvim_get_var': _get_var})
        received = []
        session.on('global-variables', received.append)

        await session.attach()
        del rpc.requests[:]

        assert rpc.handlers['vimenter']() is None
        await _settle()
        return session, rpc, received

    session, rpc, received = asyncio.run(run())

    assert received == [{'ui_font_multiplier_width': 1.2}]
    assert session.global_variables == {'ui_font_multiplier_width': 1.2}

    commands = [r[1] for r in rpc.requests if r[0] == 'nvim_command']
    assert commands == [
        "command! NewGuiWindow call rpcnotify(3, 'new-window')",
        "command! QuitUI call rpcnotify(3, 'quit-ui')",
        "command! ReaderPageDown call rpcnotify(3, 'reader-page-down')",
        "command! ReaderPageUp call rpcnotify(3, 'reader-page-up')",
        "command! ReaderToggle call rpcnotify(3, 'reader-toggle')",
    ]


def test_attach_to_running_editor():
    async def run():
        session, rpc = _session({'nvim_eval': 1})
        await session.attach()
        return rpc

    rpc = asyncio.run(run())

    methods = rpc.methods()
    assert methods.index('nvim_ui_attach') < methods.index('nvim_get_var')
    assert methods.count('nvim_command') == 7


def test_redraw_goes_to_the_screen():
    session, rpc = _session()
    rpc.emit('redraw', [('grid_resize', [[1, 3, 2]]), ('grid_line', [[1, 0, 0, [['x', 0, 3]]]])])

    assert session.screen.grids[1].text(0) == 'xxx'


def test_notifications_become_session_events():
    session, rpc = _session()
    received = []
    for event in ('new-window', 'quit-ui', 'reader-page-down', 'reader-page-up',
                  'reader-toggle', 'closed', 'error'):
        session.on(event, lambda *args, event=event: received.append(event))

    rpc.emit('reader-toggle')
    rpc.emit('new-window')
    rpc.emit('error', ValueError('x'))
    rpc.emit('closed')

    assert received == ['reader-toggle', 'new-window', 'error', 'closed']


def test_input():
    async def run():
        session, rpc = _session()
        assert session.send_key(KeyEvent('Shift')) is None
        session.send_key(KeyEvent('Enter', ctrl=True))

        event = MouseEvent('left', 'press', '', 1, 2, 3)
        assert session.send_mouse(event) is None
        session.screen.apply([('mouse_on', [[]])])
        session.send_mouse(event)
        return rpc.requests

    assert asyncio.run(run()) == [
        ('nvim_input', '<C-CR>'),
        ('nvim_input_mouse', 'left', 'press', '', 1, 2, 3),
    ]


def test_command_and_eval():
    async def run():
        session, rpc = _session({'nvim_eval': lambda expr: 'result of %s' % expr})
        await session.command('split')
        return await session.eval('&columns'), rpc.requests

    result, requests = asyncio.run(run())
    assert result == 'result of &columns'
    assert requests == [('nvim_command', 'split'), ('nvim_eval', '&columns')]


def test_resize_failure_is_logged():
    async def run():
        session, rpc = _session({'nvim_ui_try_resize': RequestFailure([0, 'UI not attached'])})
        future = session.resize(120, 40)
        await _settle()
        return session, future

    session, future = asyncio.run(run())
    assert (session.width, session.height) == (120, 40)
    assert isinstance(future.exception(), RequestFailure)


def test_close():
    session, rpc = _session()
    closed = []
    session.on('closed', lambda: closed.append(True))

    session.close()
    assert rpc.closed
    assert closed == [True]


# Registry.

class Factory:
    def __init__(self, results=None):
        self.results = results
        self.created = []

    async def __call__(self):
        session, rpc = _session(self.results)
        self.created.append(session)
        return session


def test_registry_ids_are_monotonic():
    async def run():
        registry = SessionRegistry()
        factory = Factory()

        first = await registry.create(factory)
        second = await registry.create(factory)
        registry.destroy(first.id)
        third = await registry.create(factory)
        return registry, [first.id, second.id, third.id]

    registry, ids = asyncio.run(run())
    assert ids == ['nvim1', 'nvim2', 'nvim3']
    assert len(registry) == 2
    assert 'nvim1' not in registry
    assert [s.id for s in registry] == ['nvim2', 'nvim3']
    assert registry.get('nvim3').attached


def test_registry_focus_and_destroy_on_close():
    focused = []
    empty = []

    async def run():
        registry = SessionRegistry(on_focus=focused.append,
                                   on_empty=lambda: empty.append(True))
        factory = Factory()
        first = await registry.create(factory)
        second = await registry.create(factory)
        assert registry.active is second

        second.rpc.emit('closed')
        assert registry.active is first
        assert 'nvim2' not in registry

        first.rpc.emit('closed')
        return registry, first, second

    registry, first, second = asyncio.run(run())
    assert focused == [first, second, first]
    assert registry.active is None
    assert len(registry) == 0
    assert empty == [True]
    assert first.rpc.closed and second.rpc.closed


def test_registry_new_window():
    async def run():
        registry = SessionRegistry()
        factory = Factory()
        first = await registry.create(factory)

        first.rpc.emit('new-window')
        await _settle()
        return registry, factory

    registry, factory = asyncio.run(run())
    assert len(factory.created) == 2
    assert sorted(registry.sessions) == ['nvim1', 'nvim2']
    assert registry.active is factory.created[1]


def test_registry_quit_ui_closes_everything():
    empty = []

    async def run():
        registry = SessionRegistry(on_empty=lambda: empty.append(True))
        factory = Factory()
        await registry.create(factory)
        second = await registry.create(factory)

        second.rpc.emit('quit-ui')
        return registry, factory

    registry, factory = asyncio.run(run())
    assert len(registry) == 0
    assert all(session.rpc.closed for session in factory.created)
    assert empty == [True]


def test_registry_attach_failure():
    async def run():
        registry = SessionRegistry()
        factory = Factory({'nvim_ui_attach': RequestFailure([0, 'UI already attached'])})

        with pytest.raises(RequestFailure):
            await registry.create(factory)
        return registry

    registry = asyncio.run(run())
    assert len(registry) == 0
