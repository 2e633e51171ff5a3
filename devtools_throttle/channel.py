import asyncio
import itertools
import logging
import os
from collections import defaultdict, namedtuple

import aiohttp
from aiohttp import WSMsgType

from devtools_throttle.errors import ChannelUnavailable, CommandRejected

with_ujson = os.environ.get('DTT_UJSON', '').lower() == 'true'
if with_ujson:
    import ujson as json
else:
    import json

logger = logging.getLogger(__name__)

# Result of asking a session for its DevTools channel
Supported = namedtuple('Supported', ('channel',))
Unsupported = namedtuple('Unsupported', ('reason',))


class DevToolsChannel(object):
    """One WebSocket connection to a DevTools target.

    Commands are matched to replies by id. Events (frames without an id) are
    handed to listeners from a single reader task, so listeners for one
    channel never run concurrently.
    """

    def __init__(self, http, ws, name=''):
        self._http = http
        self._ws = ws
        self._ids = itertools.count(1)
        self._pending = {}
        self._listeners = defaultdict(list)
        self.log_prefix = '[CHANNEL {}]'.format(name)
        self._reader = asyncio.get_running_loop().create_task(self._read())

    @classmethod
    async def connect(cls, url, name=''):
        http = aiohttp.ClientSession()
        try:
            ws = await http.ws_connect(url, max_msg_size=0)
        except (aiohttp.ClientError, OSError) as exc:
            await http.close()
            raise ChannelUnavailable('cannot connect to {}: {}'.format(url, exc)) from exc

        channel = cls(http, ws, name=name)
        logger.debug('%s CONNECTED %s', channel.log_prefix, url)
        return channel

    @property
    def closed(self):
        return self._ws.closed or self._reader.done()

    def on(self, method, callback):
        self._listeners[method].append(callback)

    def remove_listener(self, method, callback):
        if callback in self._listeners.get(method, ()):
            self._listeners[method].remove(callback)

    async def send(self, method, params=None):
        if self.closed:
            raise ChannelUnavailable('channel is closed')

        request_id = next(self._ids)
        data = {'id': request_id, 'method': method, 'params': params or {}}
        reply = asyncio.get_running_loop().create_future()
        self._pending[request_id] = reply

        logger.debug('%s >> %s', self.log_prefix, data)
        try:
            await self._ws.send_str(json.dumps(data))
            response = await reply
        finally:
            self._pending.pop(request_id, None)

        error = response.get('error')
        if error is not None:
            raise CommandRejected(method, error.get('message', ''), error.get('code'))
        return response.get('result', {})

    async def close(self):
        if not self._ws.closed:
            await self._ws.close()
        if not self._reader.done():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
        self._fail_pending()
        if not self._http.closed:
            await self._http.close()
        self._listeners.clear()
        logger.debug('%s DISCONNECTED', self.log_prefix)

    async def _read(self):
        # Once this returns the channel is unusable, see `closed`
        try:
            async for msg in self._ws:
                if msg.type == WSMsgType.TEXT:
                    data = msg.json(loads=json.loads)
                    logger.debug('%s << %s', self.log_prefix, data)
                    if data.get('id') is None:
                        self._dispatch(data)
                    else:
                        reply = self._pending.get(data['id'])
                        if reply is not None and not reply.done():
                            reply.set_result(data)
                elif msg.type == WSMsgType.ERROR:
                    logger.warning('%s ERROR %s', self.log_prefix, self._ws.exception())
                    break
        except ValueError as exc:
            logger.error('%s malformed frame, dropping channel: %s', self.log_prefix, exc)
        finally:
            self._fail_pending()

    def _dispatch(self, data):
        method = data.get('method', '')
        for callback in list(self._listeners.get(method, ())):
            try:
                callback(data.get('params', {}))
            except Exception:
                logger.exception('%s listener for %s failed', self.log_prefix, method)

    def _fail_pending(self):
        for reply in self._pending.values():
            if not reply.done():
                reply.set_exception(ChannelUnavailable('channel closed while waiting for a reply'))
