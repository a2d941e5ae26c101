"""
Ways to obtain a byte stream to the editor. All of them return a connected
`RPCProtocol`; what happens on the other end of the stream is none of our
business.
"""
import asyncio

from .log import logger
from .options import DEFAULT_CONTAINER, DEFAULT_SOCKET_PATH, NVIM_COMMAND
from .rpc import RPCProtocol, SubprocessRPCProtocol

__all__ = ('spawn', 'connect_socket', 'exec_in_container')


async def _run_subprocess(command):
    loop = asyncio.get_running_loop()
    logger.info('Starting process: %r' % (command, ))

    transport, protocol = await loop.subprocess_exec(
                    SubprocessRPCProtocol, *command)
    return protocol.rpc


async def spawn(args=()):
    """ Start an embedded editor process and talk over its stdin/stdout. """
    return await _run_subprocess([NVIM_COMMAND, '--embed'] + list(args))


async def exec_in_container(name=DEFAULT_CONTAINER):
    """
    Start an embedded editor inside a running container. The '-i' flag keeps
    stdin open.
    """
    return await _run_subprocess(['docker', 'exec', '-i', name, NVIM_COMMAND, '--embed'])


async def connect_socket(path=DEFAULT_SOCKET_PATH):
    """ Connect to an editor listening on a unix domain socket. """
    loop = asyncio.get_running_loop()
    logger.info('Connecting to socket: %s' % path)

    transport, protocol = await loop.create_unix_connection(RPCProtocol, path)
    return protocol
