import argparse
import asyncio
import logging
import os
import sys
import warnings

from devtools_throttle import VERSION
from devtools_throttle.channel import json
from devtools_throttle.collector import attach, summarize
from devtools_throttle.errors import ThrottleError
from devtools_throttle.harness import ExecutionMode, throttle_for_mode
from devtools_throttle.session import Session
from devtools_throttle.throttle import PRESETS, apply_throttling

with_uvloop = os.environ.get('DTT_UVLOOP', '').lower() == 'true'
if with_uvloop:
    import uvloop

    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())

logger = logging.getLogger('devtools_throttle')


def explicit_profile(args):
    overrides = {
        'cpu_rate': args.cpu_rate,
        'latency_ms': args.latency,
        'download_bps': args.download,
        'upload_bps': args.upload,
        'connection_type': args.connection_type,
    }
    if args.preset is None and all(v is None for v in overrides.values()):
        return None
    return PRESETS[args.preset or 'default'].override(**overrides)


async def run(args, mode, profile):
    session = await Session.connect(args.chrome_host, args.chrome_port, target_id=args.target)
    try:
        if profile is not None:
            await apply_throttling(session, profile)
            throttled = True
        else:
            throttled = await throttle_for_mode(session, mode)

        if args.filter is None:
            return

        log = attach(session, args.filter)
        logger.info('[COLLECTOR] recording %r for %ss', args.filter, args.duration)
        await asyncio.sleep(args.duration)
        log.detach()

        for sample in log:
            args.output.write(json.dumps(sample.to_dict()) + '\n')
        summary = {'summary': summarize(log).to_dict(), 'throttled': throttled, 'mode': mode.value}
        args.output.write(json.dumps(summary) + '\n')
        args.output.flush()
    finally:
        await session.close()


def setup_logging(stream, debug):
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s'))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    logging.captureWarnings(True)


def make_parser():
    parser = argparse.ArgumentParser(
        prog='devtools-throttle',
        description='Throttle a Chrome page over DevTools and record request latency',
    )
    parser.add_argument(
        '--chrome-host',
        type=str, default='127.0.0.1',
        help=('Host on which Chrome is running, '
              'it corresponds with --remote-debugging-address Chrome argument (default: %(default)r)'),
    )
    parser.add_argument(
        '--chrome-port',
        type=int, default=9222,
        help=('Port which Chrome remote debugger is listening, '
              'it corresponds with --remote-debugging-port Chrome argument (default: %(default)r)'),
    )
    parser.add_argument(
        '--target',
        type=str, default=None,
        help='Id of the page to attach to (default: the first page)',
    )
    parser.add_argument(
        '--mode',
        type=str, default=os.environ.get('DTT_EXECUTION_MODE', ExecutionMode.STANDARD.value),
        choices=[m.value for m in ExecutionMode],
        help='Execution mode, only {!r} is throttled (default: %(default)r)'.format(ExecutionMode.CONSTRAINED.value),
    )
    parser.add_argument(
        '--preset',
        type=str, default=None, choices=sorted(PRESETS),
        help='Throttle with a named profile regardless of --mode',
    )
    parser.add_argument('--cpu-rate', type=float, default=None, help='CPU slowdown multiplier, >= 1')
    parser.add_argument('--latency', type=float, default=None, help='Extra round trip latency, ms')
    parser.add_argument('--download', type=float, default=None, help='Download throughput, bytes/s')
    parser.add_argument('--upload', type=float, default=None, help='Upload throughput, bytes/s')
    parser.add_argument('--connection-type', type=str, default=None, help='Connection label, e.g. cellular4g')
    parser.add_argument(
        '--filter',
        type=str, default=None,
        help='Record latency of requests whose URL contains this string',
    )
    parser.add_argument(
        '--duration',
        type=float, default=10.0,
        help='Seconds to record for when --filter is given (default: %(default)r)',
    )
    parser.add_argument(
        '--output',
        default=sys.stdout, type=argparse.FileType('w'),
        help='Write samples as JSON lines to file',
    )
    parser.add_argument(
        '--log',
        default=sys.stderr, type=argparse.FileType('w'),
        help='Write logs to file (default: stderr, stdout carries the samples)',
    )
    parser.add_argument(
        '--version',
        action='version',
        version=VERSION,
        help='Print version',
    )
    parser.add_argument(
        '--debug',
        action='store_true', default=False,
        help='Turn on debug mode (default: %(default)r)',
    )
    return parser


def main(argv=None):
    parser = make_parser()
    args = parser.parse_args(argv)

    try:
        mode = ExecutionMode.from_label(args.mode)
        profile = explicit_profile(args)
    except ValueError as exc:
        parser.error(str(exc))

    setup_logging(args.log, args.debug)

    loop = asyncio.new_event_loop()
    if args.debug:
        warnings.simplefilter('always')
        loop.set_debug(True)

    try:
        loop.run_until_complete(run(args, mode, profile))
    except ThrottleError as exc:
        logger.error('[ERROR] %s', exc)
        return 1
    except KeyboardInterrupt:
        return 130
    finally:
        loop.close()
    return 0


if __name__ == '__main__':
    sys.exit(main())
