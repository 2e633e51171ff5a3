#!/usr/bin/env python3

# Loads the same page under two presets and prints both latency summaries

import asyncio
import sys

import selenium.webdriver
from devtools_throttle.collector import attach, summarize
from devtools_throttle.session import Session
from devtools_throttle.throttle import PRESETS, apply_throttling


async def main(driver, url, domain):
    session = await Session.from_webdriver(driver)
    try:
        for preset in ('unthrottled', 'degraded'):
            await apply_throttling(session, PRESETS[preset])
            log = attach(session, domain)
            await asyncio.get_running_loop().run_in_executor(None, driver.get, url)
            await asyncio.sleep(1)
            log.detach()
            print(preset, summarize(log))
    finally:
        await session.close()


if __name__ == '__main__':
    url = sys.argv[1] if len(sys.argv) >= 2 else 'https://www.python.org/'
    domain = sys.argv[2] if len(sys.argv) >= 3 else 'python.org'

    driver = selenium.webdriver.Chrome()
    try:
        asyncio.run(main(driver, url, domain))
    finally:
        driver.quit()
