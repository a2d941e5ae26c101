import asyncio

from nvui.input import KeyEvent
from nvui.options import Options, DEFAULT_WIDTH, DEFAULT_HEIGHT, ESCAPE_TIMEOUT
from nvui.standalone import InputProtocol, TerminalFrontEnd

from test_cursor import FakeScheduler
from test_session import FakeRPC


def _options(**kwargs):
    options = Options(transport='spawn', target=None, args=[], width=None, height=None,
                      colors='truecolor', log_file='/tmp/nvui-test-log', debug=False)
    return options._replace(**kwargs)


def _no_terminal():
    raise OSError('Not a terminal')


async def _settle():
    for _ in range(10):
        await asyncio.sleep(0)


def _frontend(output, size_func, **options):
    frontend = TerminalFrontEnd(_options(**options), output.append, size_func)
    rpcs = []

    async def connect():
        rpc = FakeRPC()
        rpcs.append(rpc)
        return rpc

    frontend.connect = connect
    return frontend, rpcs


def _redraw(text):
    return [
        ('grid_resize', [[1, 3, 2]]),
        ('grid_line', [[1, 0, 0, [[c] for c in text]]]),
        ('flush', [[]]),
    ]


def test_size():
    async def run():
        sizes = []
        for size_func, options in [(lambda: (30, 120), {}),
                                   (lambda: (30, 120), {'width': 90}),
                                   (_no_terminal, {'height': 10})]:
            frontend = TerminalFrontEnd(_options(**options), None, size_func)
            sizes.append(frontend.size)
        return sizes

    assert asyncio.run(run()) == [(120, 30), (90, 30), (DEFAULT_WIDTH, 10)]


def test_only_the_active_session_writes():
    async def run():
        output = []
        frontend, rpcs = _frontend(output, lambda: (2, 3))
        await frontend.start()
        first = frontend.registry.active

        first.rpc.emit('new-window')
        await _settle()
        second = frontend.registry.active
        assert second is not first

        del output[:]
        first.rpc.emit('redraw', _redraw('abc'))
        assert output == []

        second.rpc.emit('redraw', _redraw('xyz'))
        assert b'x' in b''.join(output)

        # The remaining session is shown again.
        del output[:]
        second.rpc.emit('closed')
        assert frontend.registry.active is first
        data = b''.join(output)
        assert b'a' in data and b'c' in data
        assert b'x' not in data

        first.rpc.emit('closed')
        assert frontend.done.done()

    asyncio.run(run())


def test_keys_go_to_the_active_session():
    async def run():
        frontend, rpcs = _frontend([], lambda: (2, 3))
        await frontend.start()

        frontend.send_key(KeyEvent('Escape'))
        return rpcs[0].requests[-1]

    assert asyncio.run(run()) == ('nvim_input', '<Esc>')


def test_update_size_resizes_attached_sessions():
    async def run():
        size = [(2, 3)]
        frontend, rpcs = _frontend([], lambda: size[0])
        await frontend.start()

        frontend.update_size()
        assert rpcs[0].methods().count('nvim_ui_try_resize') == 0

        size[0] = (40, 100)
        frontend.update_size()
        return rpcs[0].requests[-1], frontend.registry.active

    request, session = asyncio.run(run())
    assert request == ('nvim_ui_try_resize', 100, 40)
    assert (session.width, session.height) == (100, 40)


class KeyRecorder:
    def __init__(self):
        self.keys = []

    def send_key(self, event):
        self.keys.append(event)


def test_lone_escape_is_sent_after_a_timeout():
    frontend = KeyRecorder()
    scheduler = FakeScheduler()
    protocol = InputProtocol(frontend, call_later=scheduler)

    protocol.data_received(b'a\x1b')
    assert frontend.keys == [KeyEvent('a')]
    assert scheduler.handles[-1].delay == ESCAPE_TIMEOUT

    scheduler.fire()
    assert frontend.keys == [KeyEvent('a'), KeyEvent('Escape')]
    assert scheduler.active == []


def test_escape_sequence_completed_before_the_timeout():
    frontend = KeyRecorder()
    scheduler = FakeScheduler()
    protocol = InputProtocol(frontend, call_later=scheduler)

    protocol.data_received(b'\x1b')
    protocol.data_received(b'[B')

    assert frontend.keys == [KeyEvent('ArrowDown')]
    assert len(scheduler.handles) == 1
    assert scheduler.handles[0].cancelled
