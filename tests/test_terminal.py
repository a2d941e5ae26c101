from nvui.input import KeyEvent, translate_key
from nvui.terminal import KeyDecoder, alternate_screen, raw_mode


def _keys(data):
    return [translate_key(event) for event in KeyDecoder().feed(data)]


def test_printable_characters():
    assert KeyDecoder().feed(b'aB') == [KeyEvent('a'), KeyEvent('B', shift=True)]
    assert _keys(b'aB!') == ['a', 'B', '!']


def test_control_characters():
    assert _keys(b'\r\t\x7f') == ['<CR>', '<Tab>', '<BS>']
    assert _keys(b'\x01\x17') == ['<C-a>', '<C-w>']
    assert _keys(b'\x00') == ['<C-Space>']
    assert _keys(b'\x1d') == ['<C-]>']


def test_escape_sequences():
    assert _keys(b'\x1b[A\x1b[B\x1b[C\x1b[D') == ['<Up>', '<Down>', '<Right>', '<Left>']
    assert _keys(b'\x1bOP\x1b[15~\x1b[24~') == ['<F1>', '<F5>', '<F12>']
    assert _keys(b'\x1b[3~\x1b[5~\x1b[6~') == ['<Del>', '<PageUp>', '<PageDown>']
    assert _keys(b'\x1b[Z') == ['<S-Tab>']


def test_modified_escape_sequences():
    assert _keys(b'\x1b[1;5C') == ['<C-Right>']
    assert _keys(b'\x1b[1;2A') == ['<S-Up>']
    assert _keys(b'\x1b[3;3~') == ['<A-Del>']


def test_alt_and_escape():
    assert _keys(b'\x1bx') == ['<A-x>']

    decoder = KeyDecoder()
    assert decoder.feed(b'\x1b') == []
    assert decoder.pending
    assert decoder.flush() == [KeyEvent('Escape')]
    assert not decoder.pending

    assert decoder.feed(b'\x1b\x1b') == [KeyEvent('Escape')]
    assert decoder.flush() == [KeyEvent('Escape')]


def test_escape_sequence_split_over_reads():
    decoder = KeyDecoder()
    assert decoder.feed(b'a\x1b') == [KeyEvent('a')]
    assert decoder.feed(b'[A') == [KeyEvent('ArrowUp')]

    assert decoder.feed(b'\x1b[1;') == []
    assert [translate_key(e) for e in decoder.feed(b'5C')] == ['<C-Right>']

    assert decoder.feed(b'\x1bO') == []
    assert decoder.feed(b'P') == [KeyEvent('F1')]
    assert not decoder.pending


def test_flush_of_an_incomplete_sequence():
    decoder = KeyDecoder()
    assert decoder.feed(b'\x1b[') == []
    assert decoder.flush() == [KeyEvent('[', alt=True)]
    assert decoder.flush() == []


def test_unknown_sequences_are_dropped():
    assert _keys(b'\x1b[99~a') == ['a']


def test_utf8_split_over_reads():
    decoder = KeyDecoder()
    data = 'é'.encode('utf-8')

    assert decoder.feed(data[:1]) == []
    assert decoder.feed(data[1:]) == [KeyEvent('é')]


def test_alternate_screen():
    output = []
    with alternate_screen(output.append):
        output.append(b'content')

    assert output[0] == b'\033[?1049h'
    assert output[1] == b'content'
    assert output[-1] == b'\033[?1049l'
    assert b'\033[?25h' in output


class NotATerminal:
    def isatty(self):
        return False

    def fileno(self):
        raise AssertionError('Should not be used.')


def test_raw_mode_ignores_non_terminals():
    with raw_mode(NotATerminal()) as mode:
        assert mode.attrs_before is None
