import socket
import threading
import time

import pytest
import zmq


zmq_context = zmq.Context()


class Backend:
    """ A ZeroMQ ROUTER acting as the far end of the gateway. By default it
        echoes every payload back to the sender; the keyword arguments alter
        that behavior:

        *reply*: send this payload instead of an echo.
        *delay*: seconds to wait before replying.
        *silent*: never reply.
        *malformed*: number of initial replies sent with an extra frame.
    """

    def __init__(self, reply=None, delay=0, silent=False, malformed=0):

        self.reply = reply
        self.delay = delay
        self.silent = silent
        self.malformed = malformed

        self.received = list()
        self.identities = list()

        self.socket = zmq_context.socket(zmq.ROUTER)
        self.socket.setsockopt(zmq.LINGER, 0)
        port = self.socket.bind_to_random_port('tcp://127.0.0.1')
        self.endpoint = 'tcp://127.0.0.1:%d' % (port)

        self.shutdown = False
        self.thread = threading.Thread(target=self.run, daemon=True)
        self.thread.start()


    def respond(self, identity, payload):

        if self.silent:
            return

        if self.delay:
            time.sleep(self.delay)

        if self.malformed > 0:
            self.malformed -= 1
            self.socket.send_multipart((identity, b'', payload, b'unexpected'))
            return

        if self.reply is None:
            reply = payload
        else:
            reply = self.reply

        self.socket.send_multipart((identity, b'', reply))


    def run(self):

        poller = zmq.Poller()
        poller.register(self.socket, zmq.POLLIN)

        while self.shutdown == False:
            for active, _flag in poller.poll(20):
                identity, delimiter, payload = self.socket.recv_multipart()
                self.identities.append(identity)
                self.received.append(payload)
                self.respond(identity, payload)

        self.socket.close()


    def stop(self):
        self.shutdown = True
        self.thread.join(1)



@pytest.fixture
def backend_factory():

    started = list()

    def start(**kwargs):
        backend = Backend(**kwargs)
        started.append(backend)
        return backend

    yield start

    for backend in started:
        backend.stop()


@pytest.fixture
def backend(backend_factory):
    return backend_factory()


@pytest.fixture
def unused_endpoint():
    """ A TCP endpoint with nothing listening on it. The port is released
        before the test runs; in principle something else could claim it in
        the meantime, in practice that doesn't happen on a test host.
    """

    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(('127.0.0.1', 0))
    port = probe.getsockname()[1]
    probe.close()

    return 'tcp://127.0.0.1:%d' % (port)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
