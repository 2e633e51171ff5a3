import asyncio
import uuid

import selenium.webdriver
from aiohttp.web import AppRunner, Application, Response, TCPSite
from selenium.webdriver.chrome.options import Options

# 1x1 transparent GIF
PIXEL = b'GIF89a\x01\x00\x01\x00\x80\x00\x00\x00\x00\x00\x00\x00\x00!\xf9\x04\x01\x00\x00\x00\x00,' \
        b'\x00\x00\x00\x00\x01\x00\x01\x00\x00\x02\x02D\x01\x00;'


class TestCase(object):
    def setup_method(self):
        options = Options()
        options.add_argument('--headless=new')
        options.add_argument('--remote-allow-origins=*')
        options.add_argument('--host-resolver-rules=MAP target.test 127.0.0.1, MAP other.test 127.0.0.1')

        self.driver = selenium.webdriver.Chrome(options=options)

    def teardown_method(self):
        self.driver.quit()

    @property
    def debugging_port(self):
        return int(self.driver.capabilities['goog:chromeOptions']['debuggerAddress'].rsplit(':', 1)[1])

    async def load(self, url):
        # WebDriver calls block, and the resource server shares this loop
        await asyncio.get_running_loop().run_in_executor(None, self.driver.get, url)


class ResourceServer(object):
    """Serves a page from other.test pulling images from target.test and other.test."""

    def __init__(self, target_images=3, other_images=1):
        self.target_images = target_images
        self.other_images = other_images
        self.runner = None
        self.port = None

    async def start(self):
        app = Application()
        app.router.add_get('/page', self.page_handler)
        app.router.add_get('/img/{name}', self.image_handler)

        self.runner = AppRunner(app)
        await self.runner.setup()
        site = TCPSite(self.runner, '127.0.0.1', 0)
        await site.start()
        self.port = self.runner.addresses[0][1]

    async def stop(self):
        await self.runner.cleanup()

    @property
    def page_url(self):
        return f'http://other.test:{self.port}/page'

    async def page_handler(self, request):
        images = [f'http://target.test:{self.port}/img/{uuid.uuid4().hex}.gif' for _ in range(self.target_images)]
        images += [f'http://other.test:{self.port}/img/{uuid.uuid4().hex}.gif' for _ in range(self.other_images)]
        body = '<html><body>{}</body></html>'.format(''.join(f'<img src="{src}">' for src in images))
        return Response(text=body, content_type='text/html', headers={'Cache-Control': 'no-store'})

    async def image_handler(self, request):
        return Response(body=PIXEL, content_type='image/gif', headers={'Cache-Control': 'no-store'})
