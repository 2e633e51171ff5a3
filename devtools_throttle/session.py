import logging
from collections import defaultdict, namedtuple

import aiohttp

from devtools_throttle.channel import DevToolsChannel, Supported, Unsupported
from devtools_throttle.errors import ChannelUnavailable

logger = logging.getLogger(__name__)

# Engines which speak the DevTools protocol, matched against the lowercased
# browserName capability or the Browser field of /json/version
CHROMIUM_ENGINES = ('chrome', 'chromium', 'headlesschrome', 'msedge', 'microsoftedge', 'edg')

# Coarse resource categories keyed by the DevTools resource type
RESOURCE_TYPES = {
    'Document': 'document',
    'Script': 'script',
    'Stylesheet': 'stylesheet',
    'Image': 'image',
    'Media': 'image',
    'Font': 'font',
    'Fetch': 'fetch',
    'XHR': 'fetch',
    'EventSource': 'fetch',
}

Timing = namedtuple('Timing', ('request_start', 'response_start'))


def is_chromium(engine):
    engine = (engine or '').lower()
    return any(engine.startswith(name) for name in CHROMIUM_ENGINES)


def resource_category(devtools_type):
    return RESOURCE_TYPES.get(devtools_type, 'other')


def parse_timing(timing):
    """Turn a DevTools ResourceTiming dict into request/response offsets.

    Offsets are milliseconds relative to timing['requestTime']; DevTools
    reports -1 for anything it did not record, which becomes None here.
    """
    if not timing:
        return Timing(None, None)

    def offset(key):
        value = timing.get(key)
        if value is None or value < 0:
            return None
        return value

    return Timing(offset('sendStart'), offset('receiveHeadersEnd'))


class Exchange(object):
    """One request/response pair seen on the Network domain."""

    def __init__(self, request_id, url, devtools_type=None):
        self.request_id = request_id
        self.url = url
        self.devtools_type = devtools_type
        self.raw_timing = None
        self.failure = None

    @property
    def resource_type(self):
        return resource_category(self.devtools_type)

    @property
    def timing(self):
        return parse_timing(self.raw_timing)

    def __repr__(self):
        return '<Exchange {} {} {}>'.format(self.request_id, self.resource_type, self.url)


class Session(object):
    """A browser page we can throttle and observe.

    Fires 'requestfinished' and 'requestfailed' with an Exchange once network
    tracking is running. Every listener is dropped when the session closes.
    """

    def __init__(self, engine, websocket_url=None, target_id=None):
        self.engine = engine
        self.websocket_url = websocket_url
        self.target_id = target_id
        self.closed = False
        self._channel = None
        self._listeners = defaultdict(list)
        self._exchanges = {}
        self._tracking = False

    def __repr__(self):
        return '<Session {} {}>'.format(self.engine, self.target_id)

    @property
    def supports_devtools(self):
        return is_chromium(self.engine) and self.websocket_url is not None

    @classmethod
    async def connect(cls, host, port, target_id=None):
        """Bind to a page of a browser listening on --remote-debugging-port."""
        base_url = 'http://{}:{}'.format(host, port)
        async with aiohttp.ClientSession() as http:
            try:
                async with http.get(base_url + '/json/version') as response:
                    version = await response.json(content_type=None)
                async with http.get(base_url + '/json/list') as response:
                    targets = await response.json(content_type=None)
            except (aiohttp.ClientError, OSError) as exc:
                raise ChannelUnavailable('no DevTools endpoint at {}: {}'.format(base_url, exc)) from exc

        engine = version.get('Browser', '').split('/')[0]
        target = select_target(targets, target_id)
        if target is None:
            raise ChannelUnavailable('no page target {}at {}'.format(
                '{} '.format(target_id) if target_id else '', base_url))

        session = cls(engine, target.get('webSocketDebuggerUrl'), target.get('id'))
        try:
            await session.start()
        except Exception:
            await session.close()
            raise
        return session

    @classmethod
    async def from_webdriver(cls, driver):
        """Bind to the current page of a Selenium driven browser."""
        capabilities = driver.capabilities
        engine = capabilities.get('browserName', '')
        if not is_chromium(engine):
            logger.info('[SESSION] %s does not speak the DevTools protocol', engine)
            return cls(engine)

        options = capabilities.get('goog:chromeOptions') or capabilities.get('ms:edgeOptions') or {}
        address = options.get('debuggerAddress')
        if address is None:
            raise ChannelUnavailable('{} driver exposes no debuggerAddress'.format(engine))

        host, port = address.rsplit(':', 1)
        return await cls.connect(host, int(port))

    async def open_channel(self):
        if self.closed:
            return Unsupported('session is closed')
        if not self.supports_devtools:
            return Unsupported('{} does not speak the DevTools protocol'.format(self.engine or 'browser'))

        if self._channel is None or self._channel.closed:
            if self._channel is not None:
                await self._channel.close()
            try:
                self._channel = await DevToolsChannel.connect(self.websocket_url, name=self.target_id or '')
            except ChannelUnavailable as exc:
                return Unsupported(str(exc))
            if self._tracking:
                # Reconnected: exchanges in flight on the old channel are lost
                self._exchanges.clear()
                await self._track(self._channel)
        return Supported(self._channel)

    async def start(self):
        """Start tracking network exchanges. A no-op for other engines."""
        if self._tracking:
            return
        result = await self.open_channel()
        if isinstance(result, Unsupported):
            if self.closed or self.supports_devtools:
                raise ChannelUnavailable(result.reason)
            logger.info('[SESSION] network tracking off: %s', result.reason)
            return

        await self._track(result.channel)
        self._tracking = True

    async def _track(self, channel):
        channel.on('Network.requestWillBeSent', self._on_request)
        channel.on('Network.responseReceived', self._on_response)
        channel.on('Network.loadingFinished', self._on_finished)
        channel.on('Network.loadingFailed', self._on_failed)
        await channel.send('Network.enable')

    async def close(self):
        if self.closed:
            return
        self.closed = True
        self._listeners.clear()
        self._exchanges.clear()
        if self._channel is not None:
            await self._channel.close()
            self._channel = None
        logger.debug('[SESSION] %s CLOSED', self.target_id)

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def on(self, event, callback):
        if self.closed:
            raise ChannelUnavailable('session is closed')
        self._listeners[event].append(callback)

    def remove_listener(self, event, callback):
        if callback in self._listeners.get(event, ()):
            self._listeners[event].remove(callback)

    def emit(self, event, *args):
        for callback in list(self._listeners.get(event, ())):
            callback(*args)

    def _on_request(self, params):
        request = params.get('request', {})
        # Redirects reuse the request id, the latest hop wins
        self._exchanges[params['requestId']] = Exchange(params['requestId'], request.get('url', ''), params.get('type'))

    def _on_response(self, params):
        exchange = self._exchanges.get(params['requestId'])
        if exchange is None:
            return
        exchange.raw_timing = params.get('response', {}).get('timing')
        exchange.devtools_type = params.get('type') or exchange.devtools_type

    def _on_finished(self, params):
        exchange = self._exchanges.pop(params['requestId'], None)
        if exchange is not None:
            self.emit('requestfinished', exchange)

    def _on_failed(self, params):
        exchange = self._exchanges.pop(params['requestId'], None)
        if exchange is not None:
            exchange.failure = params.get('errorText', '')
            self.emit('requestfailed', exchange)


def select_target(targets, target_id=None):
    if target_id is not None:
        return next((t for t in targets if t.get('id') == target_id), None)
    return next((t for t in targets if t.get('type') == 'page'), None)
