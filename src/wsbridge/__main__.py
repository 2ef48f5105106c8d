""" Command-line entry point: parse arguments, build the app, and hand it to
    uvicorn. Every option falls back to the corresponding WSBRIDGE_*
    environment variable, and then to the built-in default.
"""

import argparse
import sys

import uvicorn

from . import log
from .config import MODES, STATELESS, Settings
from .server import create_app
from .session import ReplyPolicy


def parse_arguments(argv=None):

    description = 'Relay WebSocket and HTTP requests to a ZeroMQ backend.'
    parser = argparse.ArgumentParser(prog='wsbridge', description=description)

    parser.add_argument('--mode', choices=MODES,
        help='gateway mode (default: session)')
    parser.add_argument('--host',
        help='address the HTTP/WebSocket server listens on')
    parser.add_argument('--port', type=int,
        help='port the HTTP/WebSocket server listens on')
    parser.add_argument('--backend',
        help='ZeroMQ endpoint of the request/reply backend')
    parser.add_argument('--publish',
        help='ZeroMQ endpoint of the fan-out broadcast channel')
    parser.add_argument('--subscribe',
        help='ZeroMQ endpoint to monitor and log; disabled if omitted')
    parser.add_argument('--cors-origin',
        help='origin added to the CORS allow-list')
    parser.add_argument('--send-timeout', type=float,
        help='seconds to wait for the backend to accept a request')
    parser.add_argument('--attempts', type=int,
        help='reply attempts for the active request/reply mode')
    parser.add_argument('--attempt-timeout', type=float,
        help='seconds per reply attempt for the active request/reply mode')
    parser.add_argument('--session-nack', action='store_true', default=None,
        help="send 'nack' when a session submit cannot be delivered")
    parser.add_argument('--timeout-status', type=int,
        help='HTTP status for a stateless call with no reply (default: 200)')
    parser.add_argument('--log-level',
        help='logging level (default: INFO)')

    return parser.parse_args(argv)



def build_settings(arguments, environ=None):
    """ Merge parsed command-line *arguments* over the environment.
    """

    settings = Settings.from_env(environ)
    settings = settings.with_overrides(
        mode=arguments.mode,
        host=arguments.host,
        port=arguments.port,
        backend=arguments.backend,
        publish=arguments.publish,
        subscribe=arguments.subscribe,
        cors_origin=arguments.cors_origin,
        send_timeout=arguments.send_timeout,
        session_nack=arguments.session_nack,
        timeout_status=arguments.timeout_status,
        log_level=arguments.log_level,
    )

    if arguments.attempts is None and arguments.attempt_timeout is None:
        return settings

    if settings.mode == STATELESS:
        current = settings.stateless_policy
        field = 'stateless_policy'
    else:
        current = settings.session_policy
        field = 'session_policy'

    attempts = arguments.attempts
    if attempts is None:
        attempts = current.attempts

    timeout = arguments.attempt_timeout
    if timeout is None:
        timeout = current.timeout

    return settings.with_overrides(**{field: ReplyPolicy(attempts, timeout)})



def main(argv=None):

    arguments = parse_arguments(argv)

    try:
        settings = build_settings(arguments)
    except ValueError as exc:
        sys.stderr.write('wsbridge: %s\n' % (exc))
        return 2

    log.configure(settings.log_level)
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0


if __name__ == '__main__':
    sys.exit(main())


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
