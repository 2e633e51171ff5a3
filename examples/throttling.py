#!/usr/bin/env python3

import asyncio
import logging

import selenium.webdriver
from devtools_throttle.collector import attach, summarize
from devtools_throttle.harness import ExecutionMode, apply_timeouts, throttle_for_mode
from devtools_throttle.session import Session


async def main(driver, mode):
    session = await Session.from_webdriver(driver)
    try:
        await throttle_for_mode(session, mode)
        log = attach(session, 'codepen.io')

        await asyncio.get_running_loop().run_in_executor(None, driver.get, 'https://codepen.io/bayandin/full/xRpROy/')
        # driver.get returns on load, late loadingFinished events may still be in flight
        await asyncio.sleep(1)
        log.detach()

        for sample in log:
            print(f'{sample.latency_ms:8.1f}ms {sample.resource_type:10} {sample.url}')
        print(summarize(log))
    finally:
        await session.close()


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    mode = ExecutionMode.CONSTRAINED

    driver = selenium.webdriver.Chrome()
    apply_timeouts(driver, mode)
    try:
        asyncio.run(main(driver, mode))
    finally:
        driver.quit()
