""" Exercise the three gateway modes through the FastAPI front end, against
    the threaded ROUTER backend defined in conftest.py.
"""

import time

import pytest
import zmq
from fastapi.testclient import TestClient
from fastapi import WebSocketDisconnect

from wsbridge.bridge import fanout
from wsbridge.config import Settings
from wsbridge.server import create_app
from wsbridge.session import ReplyPolicy
from wsbridge.transport import TransportConnectionError


# Short waits keep the "no reply" cases quick; a reply that does arrive
# still comes back as soon as it is ready.

quick = ReplyPolicy(attempts=5, timeout=0.05)


def client_for(**kwargs):
    kwargs.setdefault('send_timeout', 0.2)
    settings = Settings(**kwargs)
    return TestClient(create_app(settings))


# --- fan-out relay ---

def test_fanout_echo(unused_endpoint):

    client = client_for(mode='fanout', publish=unused_endpoint)

    with client.websocket_connect('/ws/') as ws:
        for text in ('one', 'two', 'three'):
            ws.send_text(text)
            assert ws.receive_text() == text

        ws.send_bytes(b'\x00\x01\xff')
        assert ws.receive_bytes() == b'\x00\x01\xff'


def test_fanout_publishes():

    context = zmq.Context.instance()
    subscriber = context.socket(zmq.SUB)
    subscriber.setsockopt(zmq.LINGER, 0)
    subscriber.setsockopt(zmq.SUBSCRIBE, b'')
    port = subscriber.bind_to_random_port('tcp://127.0.0.1')

    client = client_for(mode='fanout', publish='tcp://127.0.0.1:%d' % (port))
    received = None

    # PUB drops messages until the subscription has propagated, so keep
    # sending until one gets through.

    with client.websocket_connect('/ws/') as ws:
        for attempt in range(50):
            text = 'message %d' % (attempt)
            ws.send_text(text)
            assert ws.receive_text() == text

            if subscriber.poll(50):
                received = subscriber.recv()
                break

    subscriber.close()

    assert received is not None
    assert received.startswith(b'message ')


class FailingPublisher:

    sent = 0

    def __init__(self, endpoint):
        self.endpoint = endpoint

    async def send(self, payload):
        FailingPublisher.sent += 1
        raise TransportConnectionError('publish refused')

    def close(self):
        pass


def test_fanout_publish_failure(monkeypatch):

    monkeypatch.setattr(fanout, 'Publisher', FailingPublisher)
    client = client_for(mode='fanout')

    with client.websocket_connect('/ws/') as ws:
        ws.send_text('first')
        ws.send_text('second')

        # Exactly one echo per message, in order, despite every publish
        # failing.

        assert ws.receive_text() == 'first'
        assert ws.receive_text() == 'second'

    assert FailingPublisher.sent == 2


def test_fanout_no_publisher():

    client = client_for(mode='fanout', publish='bogus://nowhere')

    with client.websocket_connect('/ws/') as ws:
        ws.send_text('still echoed')
        assert ws.receive_text() == 'still echoed'


# --- session-bound bridge ---

def test_session_poll_before_submit(backend):

    client = client_for(mode='session', backend=backend.endpoint, session_policy=quick)

    with client.websocket_connect('/ws/') as ws:

        # The first poll has nothing to return and must not send anything;
        # the first message received is therefore the reply to 'hello'.

        ws.send_text('poll')
        ws.send_text('hello')
        ws.send_text('poll')
        assert ws.receive_text() == 'hello'


def test_session_submit_and_poll(backend):

    policy = ReplyPolicy(attempts=1, timeout=2)
    client = client_for(mode='session', backend=backend.endpoint, session_policy=policy)

    with client.websocket_connect('/ws/') as ws:
        for text in ('alpha', 'beta', 'ünïcødé'):
            ws.send_text(text)
            ws.send_text('poll')
            assert ws.receive_text() == text

        ws.send_bytes(b'raw')
        assert ws.receive_bytes() == b'raw'

    assert backend.received == [b'alpha', b'beta', 'ünïcødé'.encode()]

    # One connection for the whole session.

    assert len(set(backend.identities)) == 1


def test_session_unusable_replies(backend_factory):

    backend = backend_factory(reply=b'\xff\xfe not utf-8')
    client = client_for(mode='session', backend=backend.endpoint, session_policy=quick)

    with client.websocket_connect('/ws/') as ws:
        ws.send_text('hello')
        ws.send_text('poll')        # Reply discarded, nothing sent.
        ws.send_bytes(b'marker')
        assert ws.receive_bytes() == b'marker'

    backend = backend_factory(reply=b'')
    client = client_for(mode='session', backend=backend.endpoint, session_policy=quick)

    with client.websocket_connect('/ws/') as ws:
        ws.send_text('hello')
        ws.send_text('poll')        # Empty reply, nothing sent.
        ws.send_bytes(b'marker')
        assert ws.receive_bytes() == b'marker'


def test_session_silent_drop(unused_endpoint):

    client = client_for(mode='session', backend=unused_endpoint, session_policy=quick)

    with client.websocket_connect('/ws/') as ws:
        ws.send_text('lost')
        ws.send_text('poll')
        ws.send_bytes(b'marker')
        assert ws.receive_bytes() == b'marker'


def test_session_nack(unused_endpoint, backend):

    client = client_for(mode='session', backend=unused_endpoint, session_policy=quick, session_nack=True)

    with client.websocket_connect('/ws/') as ws:
        ws.send_text('lost')
        assert ws.receive_text() == 'nack'

    # A second submit while the first reply is unconsumed is refused.

    policy = ReplyPolicy(attempts=1, timeout=2)
    client = client_for(mode='session', backend=backend.endpoint, session_policy=policy, session_nack=True)

    with client.websocket_connect('/ws/') as ws:
        ws.send_text('first')
        ws.send_text('second')
        assert ws.receive_text() == 'nack'

        ws.send_text('poll')
        assert ws.receive_text() == 'first'

    assert backend.received == [b'first']


# --- stateless bridge ---

def test_stateless_echo(backend):

    client = client_for(mode='stateless', backend=backend.endpoint, stateless_policy=quick)

    response = client.post('/', content=b'request body')
    assert response.status_code == 200
    assert response.content == b'request body'
    assert response.headers['content-type'] == 'application/octet-stream'


def test_stateless_unreachable(unused_endpoint):

    client = client_for(mode='stateless', backend=unused_endpoint, stateless_policy=quick)

    response = client.post('/', content=b'hello')
    assert response.status_code == 503
    assert len(response.content) > 0


def test_stateless_empty_equivalence(backend_factory):

    # A zero-byte reply and no reply at all look the same to the caller.

    empty = backend_factory(reply=b'')
    client = client_for(mode='stateless', backend=empty.endpoint, stateless_policy=quick)

    response = client.post('/', content=b'hello')
    assert response.status_code == 200
    assert response.content == b''

    silent = backend_factory(silent=True)
    client = client_for(mode='stateless', backend=silent.endpoint, stateless_policy=quick)

    begin = time.time()
    response = client.post('/', content=b'hello')
    elapsed = time.time() - begin

    assert response.status_code == 200
    assert response.content == b''
    assert elapsed >= quick.budget * 0.9


def test_stateless_timeout_status(backend_factory):

    silent = backend_factory(silent=True)
    client = client_for(mode='stateless', backend=silent.endpoint, stateless_policy=quick, timeout_status=504)

    response = client.post('/', content=b'hello')
    assert response.status_code == 504
    assert len(response.content) > 0

    # A zero-byte reply is still a reply.

    empty = backend_factory(reply=b'')
    client = client_for(mode='stateless', backend=empty.endpoint, stateless_policy=quick, timeout_status=504)

    response = client.post('/', content=b'hello')
    assert response.status_code == 200
    assert response.content == b''


def test_stateless_isolation(backend_factory):

    backend = backend_factory(malformed=1)
    client = client_for(mode='stateless', backend=backend.endpoint, stateless_policy=quick)

    first = client.post('/', content=b'first')
    second = client.post('/', content=b'second')

    assert first.status_code == 503
    assert second.status_code == 200
    assert second.content == b'second'

    # Each call used its own connection.

    assert len(backend.identities) == 2
    assert backend.identities[0] != backend.identities[1]


# --- common front-end surface ---

@pytest.mark.parametrize('mode', ('fanout', 'session', 'stateless'))
def test_health(mode):

    client = client_for(mode=mode)
    response = client.get('/health')

    assert response.status_code == 200
    assert response.json() == {'status': 'ok', 'mode': mode}


def test_routes_follow_mode(backend):

    client = client_for(mode='session', backend=backend.endpoint)
    response = client.post('/', content=b'hello')
    assert response.status_code in (404, 405)

    client = client_for(mode='stateless', backend=backend.endpoint)
    with pytest.raises(WebSocketDisconnect) as caught:
        with client.websocket_connect('/ws/'):
            pass

    assert caught.value.code == 1000


def test_cors():

    client = client_for(mode='stateless', cors_origin='http://console.example')

    headers = dict()
    headers['Origin'] = 'http://anywhere.example'
    headers['Access-Control-Request-Method'] = 'POST'
    headers['Access-Control-Request-Headers'] = 'Content-Type'

    response = client.options('/', headers=headers)
    assert response.status_code == 200
    assert response.headers['access-control-allow-origin'] in ('*', 'http://anywhere.example')
    assert response.headers['access-control-max-age'] == '3600'
    assert 'POST' in response.headers['access-control-allow-methods']

    headers['Access-Control-Request-Method'] = 'DELETE'
    response = client.options('/', headers=headers)
    assert response.status_code == 400


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
