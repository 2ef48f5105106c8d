""" Background monitor for the broadcast channel. A :class:`Monitor` runs
    its own thread with a SUB socket subscribed to every topic, and logs
    each message it sees. This is a diagnostic side channel; nothing in the
    request/reply path depends on it.
"""

import atexit
import logging
import threading

import zmq

from ..base import TransportConnectionError


logger = logging.getLogger(__name__)

zmq_context = zmq.Context()


class Monitor:
    """ SUB client draining the broadcast channel in a daemon thread.
        The *endpoint* is connected to, not bound; the publisher side of
        the broadcast channel is expected to be bound elsewhere.
    """

    poll_interval = 100

    def __init__(self, endpoint):

        self.endpoint = endpoint
        self.received = 0
        self.last = None
        self.shutdown = False

        self.socket = zmq_context.socket(zmq.SUB)
        self.socket.setsockopt(zmq.LINGER, 0)

        try:
            self.socket.connect(endpoint)
            self.socket.setsockopt(zmq.SUBSCRIBE, b'')
        except zmq.ZMQError as exc:
            self.socket.close()
            raise TransportConnectionError('%s: cannot connect monitor: %s' % (endpoint, exc)) from exc

        self.thread = threading.Thread(target=self.run, daemon=True)
        self.thread.start()
        logger.info('monitor subscribed to %s', endpoint)


    def handle(self, parts):
        """ Log one multipart message. Text is shown as-is where possible.
        """

        rendered = list()

        for part in parts:
            try:
                rendered.append(part.decode())
            except UnicodeDecodeError:
                rendered.append(repr(part))

        self.received += 1
        self.last = tuple(parts)
        logger.info('broadcast: %s', ' | '.join(rendered))


    def run(self):

        poller = zmq.Poller()
        poller.register(self.socket, zmq.POLLIN)

        try:
            while self.shutdown == False:
                for active, _flag in poller.poll(self.poll_interval):
                    parts = self.socket.recv_multipart()
                    self.handle(parts)
        except zmq.ZMQError:
            logger.exception('monitor on %s stopped', self.endpoint)
        finally:
            self.socket.close(linger=0)


    def stop(self, timeout=1):
        self.shutdown = True
        self.thread.join(timeout)



def _cleanup():
    try:
        zmq_context.destroy(linger=0)
    except zmq.ZMQError:
        pass


atexit.register(_cleanup)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
