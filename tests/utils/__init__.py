import asyncio
from contextlib import contextmanager

import requests
import websocket
from aiohttp.web import AppRunner, Application, TCPSite, WebSocketResponse, WSMsgType, json_response

PAGE_ID = 'A1B2C3D4'


async def until(predicate, timeout=2, interval=0.01):
    for i in range(int(timeout / interval)):
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()


@contextmanager
def devtools_ws(port, timeout=2):
    tabs = requests.get(f'http://127.0.0.1:{port}/json/list').json()
    tab = next(tab for tab in tabs if tab.get('type') == 'page')
    devtools_url = tab['webSocketDebuggerUrl']

    ws = websocket.create_connection(devtools_url)
    ws.timeout = timeout
    yield ws
    ws.close()


class FakeChrome(object):
    """Just enough of a DevTools endpoint: discovery, commands, events.

    Every command is recorded and acknowledged, unless its method is in
    `reject`, in which case it gets a protocol error, or in `garble`, in
    which case the reply is not JSON at all.
    """

    def __init__(self, browser='HeadlessChrome/126.0.6478.126', reject=(), garble=()):
        self.browser = browser
        self.reject = set(reject)
        self.garble = set(garble)
        self.commands = []
        self.sockets = []
        self.port = None
        self.runner = None

    @property
    def methods(self):
        return [method for method, _ in self.commands]

    def params(self, method):
        return [params for m, params in self.commands if m == method]

    async def start(self):
        app = Application()
        app.router.add_get('/json/version', self.version_handler)
        app.router.add_get('/json/list', self.list_handler)
        app.router.add_get('/devtools/page/{page_id}', self.ws_handler)

        self.runner = AppRunner(app)
        await self.runner.setup()
        site = TCPSite(self.runner, '127.0.0.1', 0)
        await site.start()
        self.port = self.runner.addresses[0][1]

    async def stop(self):
        for ws in self.sockets:
            if not ws.closed:
                await ws.close()
        await self.runner.cleanup()

    async def version_handler(self, request):
        return json_response({'Browser': self.browser, 'Protocol-Version': '1.3'})

    async def list_handler(self, request):
        return json_response([
            {'id': 'SW1', 'type': 'service_worker', 'url': 'https://example.com/sw.js'},
            {
                'id': PAGE_ID,
                'type': 'page',
                'url': 'about:blank',
                'webSocketDebuggerUrl': f'ws://{request.host}/devtools/page/{PAGE_ID}',
            },
        ])

    async def ws_handler(self, request):
        ws = WebSocketResponse()
        await ws.prepare(request)
        self.sockets.append(ws)

        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                data = msg.json()
                method = data['method']
                self.commands.append((method, data.get('params', {})))
                if method in self.garble:
                    await ws.send_str('{"id": ' + str(data['id']) + ', "result": ')
                elif method in self.reject:
                    error = {'code': -32602, 'message': f'Invalid parameters for {method}'}
                    await ws.send_json({'id': data['id'], 'error': error})
                else:
                    await ws.send_json({'id': data['id'], 'result': {}})
        return ws

    async def emit(self, method, params):
        for ws in self.sockets:
            if not ws.closed:
                await ws.send_json({'method': method, 'params': params})

    async def exchange(self, request_id, url, resource_type='Script', timing=None, failed=False):
        await self.emit('Network.requestWillBeSent', {
            'requestId': request_id,
            'request': {'url': url, 'method': 'GET'},
            'type': resource_type,
        })
        if failed:
            await self.emit('Network.loadingFailed', {'requestId': request_id, 'errorText': 'net::ERR_ABORTED'})
            return
        response = {'url': url, 'status': 200}
        if timing is not None:
            response['timing'] = timing
        await self.emit('Network.responseReceived', {'requestId': request_id, 'type': resource_type, 'response': response})
        await self.emit('Network.loadingFinished', {'requestId': request_id})


def timing(send_start=1.5, receive_headers_end=41.5):
    return {
        'requestTime': 1000.0,
        'dnsStart': -1,
        'dnsEnd': -1,
        'sendStart': send_start,
        'sendEnd': send_start + 0.2,
        'receiveHeadersEnd': receive_headers_end,
    }
