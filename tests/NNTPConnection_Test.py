# -*- coding: utf-8 -*-
#
# A base testing class/library to test the NNTP Server and Connection class
#
# Copyright (C) 2015-2016 Chris Caron <lead2gold@gmail.com>
#
# This program is free software; you can redistribute it and/or modify it
# under the terms of the GNU Lesser General Public License as published by
# the Free Software Foundation; either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Lesser General Public License for more details.

import re
import sys
import gevent

from datetime import datetime
from unittest import mock

from os.path import dirname
from os.path import abspath

try:
    from tests.TestBase import TestBase

except ImportError:
    sys.path.insert(0, dirname(dirname(abspath(__file__))))
    from tests.TestBase import TestBase

from tests.NNTPSocketServer import NNTPSocketServer

from nzbcheck.NNTPConnection import NNTPConnection
from nzbcheck.NNTPConnection import NNTPConnectionState
from nzbcheck.NNTPConnection import NNTPGreetingException
from nzbcheck.NNTPConnection import NNTPAuthException
from nzbcheck.NNTPConnection import NNTPProtocolException
from nzbcheck.NNTPConnection import MAX_LINE_LENGTH
from nzbcheck.NNTPArticleBacklog import NNTPArticleBacklog
from nzbcheck.NNTPArticleBacklog import BacklogAbortedException
from nzbcheck.NNTPServerConfig import NNTPServerConfig
from nzbcheck.SocketBase import SocketException
from nzbcheck.SocketBase import SecureSocketException


class RecordingManager(object):
    """
    Keeps track of everything a connection tells its owner
    """
    def __init__(self):
        self.failed = []
        self.errors = []
        self.disconnects = []

    def connection_failed(self, connection, error):
        self.failed.append(error)

    def connection_error(self, connection, error):
        self.errors.append(error)

    def disconnected(self, connection):
        self.disconnects.append(connection)


class OfflineNNTPConnection(NNTPConnection):
    """
    An NNTPConnection() that never touches the network; what it would have
    sent is stored instead.  It lets us drive the state machine by feeding
    it data directly.
    """
    def __init__(self, *args, **kwargs):
        super(OfflineNNTPConnection, self).__init__(*args, **kwargs)

        self.sent = []
        self.shutdowns = 0
        self.closes = 0
        self.fail_send = False
        self.states = [self.state]

        # Pretend we're connected
        self.connected = True

    def send(self, data):
        if self.fail_send:
            raise SocketException('Broken pipe')

        self.sent.append(data)
        return len(data)

    def shutdown(self):
        self.shutdowns += 1
        return True

    def close(self):
        self.closes += 1
        self.connected = False

    def _set_state(self, state):
        super(OfflineNNTPConnection, self)._set_state(state)
        if self.states[-1] != state:
            self.states.append(state)


class SlowNNTPConnection(NNTPConnection):
    """
    An NNTPConnection() whose server takes forever to answer our connect
    """
    def connect(self, timeout=None):
        gevent.sleep(30)


class SlowHandshakeNNTPConnection(NNTPConnection):
    """
    An NNTPConnection() that connects right away but whose server takes
    forever to finish the TLS handshake
    """
    def connect(self, timeout=None):
        self.connected = True

    def encrypt(self, timeout=None):
        gevent.sleep(30)


class NNTPConnection_Test(TestBase):
    """
    Test our NNTPConnection() state machine
    """

    def setUp(self):
        """
        Prepare our servers and backlog
        """
        super(NNTPConnection_Test, self).setUp()

        self.manager = RecordingManager()

        # Our running NNTP Servers (shut down when we're done)
        self._servers = []

    def tearDown(self):
        # Shutdown NNTP Dummy Servers
        for server in self._servers:
            server.shutdown()

        super(NNTPConnection_Test, self).tearDown()

    def nntp_server(self, *args, **kwargs):
        """
        Starts a dummy NNTP Server and returns it
        """
        if kwargs.get('secure'):
            kwargs['certfile'], kwargs['keyfile'] = self.certificate()

        server = NNTPSocketServer(*args, **kwargs).start()
        self._servers.append(server)
        return server

    def offline(self, articles=None, **kwargs):
        """
        Returns an OfflineNNTPConnection() that has been 'connected'
        """
        server = NNTPServerConfig(host='news.example.com', **kwargs)
        backlog = NNTPArticleBacklog(articles)
        connection = OfflineNNTPConnection(
            server=server, backlog=backlog, manager=self.manager)
        connection.connection_made()
        return connection

    def wait_for_state(self, connection, state, timeout=5.0):
        """
        Waits for our connection to reach the state specified
        """
        with gevent.Timeout(timeout, False):
            while connection.state != state:
                gevent.sleep(0.01)

        return connection.state == state

    def test_check_articles(self):
        """
        Walk through checking a few articles
        """
        connection = self.offline(['<a@example.com>', '<b@example.com>'])
        assert connection.state == NNTPConnectionState.CONNECTED
        assert connection.sent == []

        # Our welcome message
        connection.data_received(b'200 news.example.com ready\r\n')
        assert connection.state == NNTPConnectionState.CHECKING_ARTICLE
        assert connection.article == '<a@example.com>'
        assert connection.sent == ['STAT <a@example.com>\r\n']

        # The first article is missing
        connection.data_received(b'430 No such article\r\n')
        assert connection.state == NNTPConnectionState.CHECKING_ARTICLE
        assert connection.article == '<b@example.com>'
        assert connection.sent[-1] == 'STAT <b@example.com>\r\n'

        # The second one exists; we have nothing more to check
        connection.data_received(b'223 0 <b@example.com>\r\n')
        assert connection.state == NNTPConnectionState.CLOSING
        assert connection.article is None
        assert connection.shutdowns == 1
        assert len(connection.sent) == 2

        assert connection.backlog.missing == ['<a@example.com>']
        assert connection.backlog.checked == 2
        assert connection.backlog.is_complete() is True

        # Nothing is reported until the server hangs up
        assert self.manager.disconnects == []

        connection.connection_lost()
        assert connection.state == NNTPConnectionState.CLOSED
        assert connection.released is True
        assert connection.closes == 1
        assert self.manager.disconnects == [connection]
        assert self.manager.errors == []
        assert self.manager.failed == []

        assert connection.states == [
            NNTPConnectionState.NOT_CONNECTED,
            NNTPConnectionState.CONNECTED,
            NNTPConnectionState.IDLE,
            NNTPConnectionState.CHECKING_ARTICLE,
            NNTPConnectionState.IDLE,
            NNTPConnectionState.CHECKING_ARTICLE,
            NNTPConnectionState.IDLE,
            NNTPConnectionState.CLOSING,
            NNTPConnectionState.CLOSED,
        ]

        # We only ever release once
        connection.connection_lost()
        connection.stop()
        assert connection.closes == 1
        assert len(self.manager.disconnects) == 1

    def test_fragmented_responses(self):
        """
        Lines can arrive in pieces (or several at once)
        """
        connection = self.offline([
            '<a@example.com>', '<b@example.com>', '<c@example.com>'])

        connection.data_received(b'20')
        assert connection.state == NNTPConnectionState.CONNECTED
        assert connection.sent == []

        connection.data_received(b'0 ready\r\n430 No such article\r\n22')
        assert connection.sent == [
            'STAT <a@example.com>\r\n',
            'STAT <b@example.com>\r\n',
        ]
        assert connection.backlog.missing == ['<a@example.com>']
        assert connection.backlog.checked == 1

        # A bare newline ends a line too
        connection.data_received(b'3 0 <b@example.com>\n430 gone\r\n')
        assert connection.backlog.checked == 3
        assert connection.backlog.missing == [
            '<a@example.com>', '<c@example.com>']
        assert connection.state == NNTPConnectionState.CLOSING

    def test_authentication(self):
        """
        Credentials are sent once we've been welcomed
        """
        connection = self.offline(
            ['<a@example.com>'], username='bob', password='secret')

        connection.data_received(b'200 ready\r\n')
        assert connection.state == NNTPConnectionState.AUTH_USER
        assert connection.sent == ['AUTHINFO USER bob\r\n']

        connection.data_received(b'381 PASS required\r\n')
        assert connection.state == NNTPConnectionState.AUTH_PASS
        assert connection.sent[-1] == 'AUTHINFO PASS secret\r\n'

        connection.data_received(b'281 Ok\r\n')
        assert connection.state == NNTPConnectionState.CHECKING_ARTICLE
        assert connection.sent[-1] == 'STAT <a@example.com>\r\n'
        assert self.manager.failed == []

    def test_bad_greeting(self):
        """
        Anything other than a 200 welcome is a failure
        """
        for greeting in (b'201 ready (no posting)\r\n',
                         b'502 Access denied\r\n',
                         b'Hello there\r\n'):

            connection = self.offline(['<a@example.com>'])
            connection.data_received(greeting)

            assert connection.state == NNTPConnectionState.CLOSING
            assert connection.shutdowns == 1
            assert connection.sent == []
            assert isinstance(self.manager.failed[-1], NNTPGreetingException)

            # Nothing was pulled from our backlog
            assert connection.backlog.pending == 1

        assert len(self.manager.failed) == 3
        assert self.manager.errors == []

    def test_authentication_rejected(self):
        """
        A rejected username or password is a failure
        """
        connection = self.offline(
            ['<a@example.com>'], username='bob', password='secret')
        connection.data_received(b'200 ready\r\n481 Authentication failed\r\n')
        assert connection.state == NNTPConnectionState.CLOSING
        assert len(self.manager.failed) == 1
        assert isinstance(self.manager.failed[0], NNTPAuthException)
        assert connection.sent == ['AUTHINFO USER bob\r\n']

        connection = self.offline(
            ['<a@example.com>'], username='bob', password='secret')
        connection.data_received(b'200 ready\r\n381 PASS required\r\n')
        connection.data_received(b'481 Authentication failed\r\n')
        assert connection.state == NNTPConnectionState.CLOSING
        assert len(self.manager.failed) == 2
        assert isinstance(self.manager.failed[1], NNTPAuthException)
        assert connection.backlog.pending == 1

    def test_data_after_closing(self):
        """
        Nothing the server says matters once we're closing
        """
        connection = self.offline(['<a@example.com>'])
        connection.data_received(b'200 ready\r\n')

        connection.stop()
        assert connection.state == NNTPConnectionState.CLOSING
        assert connection.article is None

        connection.data_received(b'430 No such article\r\n')
        assert connection.backlog.missing == []
        assert connection.backlog.checked == 0

        # The article we were checking is lost
        assert connection.backlog.is_complete() is False

        # Responses to lines after the one that closed us are dropped too
        connection = self.offline(['<a@example.com>'])
        connection.data_received(b'200 ready\r\n223 ok\r\n430 gone\r\n')
        assert connection.state == NNTPConnectionState.CLOSING
        assert connection.backlog.missing == []
        assert connection.backlog.checked == 1

    def test_unsolicited_response(self):
        """
        Data received before we're connected is ignored
        """
        backlog = NNTPArticleBacklog(['<a@example.com>'])
        connection = OfflineNNTPConnection(
            server=NNTPServerConfig(host='news.example.com'),
            backlog=backlog, manager=self.manager)

        connection.data_received(b'200 ready\r\n')
        assert connection.state == NNTPConnectionState.NOT_CONNECTED
        assert connection.sent == []
        assert backlog.pending == 1

    def test_connection_lost(self):
        """
        The server hanging up on us unexpectedly is an error
        """
        connection = self.offline(['<a@example.com>', '<b@example.com>'])
        connection.data_received(b'200 ready\r\n')

        # We never act on a partial line
        connection.data_received(b'430 No such')
        connection.connection_lost()

        assert connection.state == NNTPConnectionState.CLOSED
        assert connection.backlog.missing == []
        assert connection.backlog.checked == 0
        assert connection.backlog.is_complete() is False

        assert len(self.manager.errors) == 1
        assert isinstance(self.manager.errors[0], SocketException)
        assert self.manager.disconnects == [connection]

    def test_send_failure(self):
        """
        A connection we can't write to is released right away
        """
        connection = self.offline(['<a@example.com>'])
        connection.fail_send = True

        connection.data_received(b'200 ready\r\n')
        assert connection.state == NNTPConnectionState.CLOSED
        assert connection.released is True
        assert connection.shutdowns == 0
        assert len(self.manager.errors) == 1
        assert isinstance(self.manager.errors[0], SocketException)
        assert self.manager.disconnects == [connection]

    def test_line_too_long(self):
        """
        Garbage that never ends isn't buffered forever
        """
        connection = self.offline(['<a@example.com>'])
        connection.data_received(b'x' * (MAX_LINE_LENGTH + 1))

        assert connection.state == NNTPConnectionState.CLOSING
        assert len(self.manager.errors) == 1
        assert isinstance(self.manager.errors[0], NNTPProtocolException)

    def test_backlog_aborted(self):
        """
        An aborted backlog closes us down
        """
        connection = self.offline(['<a@example.com>'])
        connection.backlog.abort()

        connection.data_received(b'200 ready\r\n')
        assert connection.state == NNTPConnectionState.CLOSING
        assert connection.sent == []
        assert len(self.manager.errors) == 1
        assert isinstance(self.manager.errors[0], BacklogAbortedException)

    def test_empty_backlog(self):
        """
        With nothing to check we close as soon as we're welcomed
        """
        connection = self.offline()
        connection.data_received(b'200 ready\r\n')
        assert connection.state == NNTPConnectionState.CLOSING
        assert connection.sent == []
        assert connection.shutdowns == 1

        # The server hangs up on us
        connection.connection_lost()
        assert connection.state == NNTPConnectionState.CLOSED
        assert self.manager.disconnects == [connection]
        assert self.manager.errors == []

    def test_one_byte_at_a_time(self):
        """
        Data trickling in one byte at a time gets the same treatment as
        data that arrives all at once
        """
        stream = b'200 ready\r\n381 PASS required\r\n281 Ok\r\n' \
            b'430 No such article\r\n223 0 <b@example.com>\r\n'

        whole = self.offline(
            ['<a@example.com>', '<b@example.com>'],
            username='bob', password='secret')
        whole.data_received(stream)

        trickle = self.offline(
            ['<a@example.com>', '<b@example.com>'],
            username='bob', password='secret')
        for no in range(len(stream)):
            trickle.data_received(stream[no:no + 1])

        assert trickle.sent == whole.sent
        assert trickle.states == whole.states
        assert trickle.backlog.missing == whole.backlog.missing
        assert trickle.backlog.checked == whole.backlog.checked == 2
        assert trickle.state == NNTPConnectionState.CLOSING

    def test_stop(self):
        """
        stop() can be called at any time
        """
        # Before we've been started
        connection = OfflineNNTPConnection(
            server=NNTPServerConfig(host='news.example.com'),
            backlog=NNTPArticleBacklog(), manager=self.manager)

        connection.stop()
        assert connection.state == NNTPConnectionState.CLOSED
        assert connection.released is True
        assert self.manager.disconnects == [connection]

        # We can't be started once we've been stopped
        assert connection.start() is False

        # Stopping again does nothing
        connection.stop()
        assert len(self.manager.disconnects) == 1

        # Stopping an active connection closes it gracefully
        connection = self.offline(['<a@example.com>'])
        connection.data_received(b'200 ready\r\n')
        connection.stop()
        assert connection.state == NNTPConnectionState.CLOSING
        assert connection.shutdowns == 1
        assert connection.released is False

        connection.stop()
        assert connection.shutdowns == 1

    def test_last_activity(self):
        """
        Hearing from our server updates our activity
        """
        connection = self.offline(['<a@example.com>'])
        connection.last_activity = datetime(2000, 1, 1)
        connection.data_received(b'20')
        assert connection.last_activity > datetime(2000, 1, 1)

    def test_connect(self):
        """
        Check articles against a running server
        """
        server = self.nntp_server(
            articles=['a@example.com', 'b@example.com'])

        backlog = NNTPArticleBacklog(
            ['<a@example.com>', '<b@example.com>', '<c@example.com>'])

        connection = NNTPConnection(
            server=NNTPServerConfig(host='127.0.0.1', port=server.port),
            backlog=backlog, manager=self.manager, timeout=5.0)

        assert connection.start() is True
        assert connection.start() is False
        assert connection.join(timeout=10.0) is True

        assert connection.state == NNTPConnectionState.CLOSED
        assert backlog.is_complete() is True
        assert backlog.missing == ['<c@example.com>']

        assert self.manager.errors == []
        assert self.manager.failed == []
        assert self.manager.disconnects == [connection]

        # We never said goodbye; we just stopped talking
        assert server.commands == [
            'STAT <a@example.com>',
            'STAT <b@example.com>',
            'STAT <c@example.com>',
        ]

    def test_authentication_with_server(self):
        """
        Authenticate with a running server
        """
        server = self.nntp_server(
            articles=['a@example.com'], auth_required=True)

        # Valid credentials
        backlog = NNTPArticleBacklog(['<a@example.com>'])
        connection = NNTPConnection(
            server=NNTPServerConfig(
                host='127.0.0.1', port=server.port,
                username='valid', password='valid'),
            backlog=backlog, manager=self.manager, timeout=5.0)

        connection.start()
        assert connection.join(timeout=10.0) is True
        assert backlog.is_complete() is True
        assert backlog.missing == []
        assert self.manager.failed == []
        assert server.commands == [
            'AUTHINFO USER valid',
            'AUTHINFO PASS valid',
            'STAT <a@example.com>',
        ]

        # Invalid credentials
        backlog = NNTPArticleBacklog(['<a@example.com>'])
        connection = NNTPConnection(
            server=NNTPServerConfig(
                host='127.0.0.1', port=server.port,
                username='valid', password='invalid'),
            backlog=backlog, manager=self.manager, timeout=5.0)

        connection.start()
        assert connection.join(timeout=10.0) is True
        assert backlog.checked == 0
        assert len(self.manager.failed) == 1
        assert isinstance(self.manager.failed[0], NNTPAuthException)
        assert self.manager.errors == []

    def test_bad_greeting_from_server(self):
        """
        A server that won't serve us
        """
        server = self.nntp_server(welcome='502 Permission denied')
        backlog = NNTPArticleBacklog(['<a@example.com>'])

        connection = NNTPConnection(
            server=NNTPServerConfig(host='127.0.0.1', port=server.port),
            backlog=backlog, manager=self.manager, timeout=5.0)

        connection.start()
        assert connection.join(timeout=10.0) is True
        assert len(self.manager.failed) == 1
        assert isinstance(self.manager.failed[0], NNTPGreetingException)
        assert server.commands == []
        assert backlog.pending == 1

    def test_secure_connect(self):
        """
        Check articles over a secure connection
        """
        server = self.nntp_server(
            articles=['a@example.com'], secure=True)

        backlog = NNTPArticleBacklog(['<a@example.com>', '<b@example.com>'])
        connection = NNTPConnection(
            server=NNTPServerConfig(
                host='127.0.0.1', port=server.port, secure=True),
            backlog=backlog, manager=self.manager, timeout=5.0)

        connection.start()
        assert connection.join(timeout=10.0) is True
        assert backlog.is_complete() is True
        assert backlog.missing == ['<b@example.com>']
        assert self.manager.errors == []
        assert self.manager.failed == []

    def test_secure_verify_cert(self):
        """
        Certificates are verified when we're told to
        """
        server = self.nntp_server(
            articles=['a@example.com'], secure=True)

        # Our self-signed certificate isn't trusted by default
        backlog = NNTPArticleBacklog(['<a@example.com>'])
        connection = NNTPConnection(
            server=NNTPServerConfig(
                host='127.0.0.1', port=server.port, secure=True,
                verify_cert=True),
            backlog=backlog, manager=self.manager, timeout=5.0)

        connection.start()
        assert connection.join(timeout=10.0) is True
        assert backlog.checked == 0
        assert len(self.manager.errors) == 1
        assert isinstance(self.manager.errors[0], SecureSocketException)
        assert self.manager.disconnects == [connection]

        # But it is once we tell it about our certificate
        certfile, _ = self.certificate()
        backlog = NNTPArticleBacklog(['<a@example.com>'])
        connection = NNTPConnection(
            server=NNTPServerConfig(
                host='127.0.0.1', port=server.port, secure=True,
                verify_cert=True),
            backlog=backlog, manager=self.manager, timeout=5.0,
            ca_certs=certfile)

        connection.start()
        assert connection.join(timeout=10.0) is True
        assert backlog.is_complete() is True
        assert len(self.manager.errors) == 1

    def test_connection_refused(self):
        """
        Nobody is listening
        """
        server = NNTPSocketServer().start()
        port = server.port
        server.shutdown()

        backlog = NNTPArticleBacklog(['<a@example.com>'])
        connection = NNTPConnection(
            server=NNTPServerConfig(host='127.0.0.1', port=port),
            backlog=backlog, manager=self.manager, timeout=5.0)

        connection.start()
        assert connection.join(timeout=10.0) is True
        assert connection.state == NNTPConnectionState.CLOSED
        assert len(self.manager.errors) == 1
        assert isinstance(self.manager.errors[0], SocketException)
        assert self.manager.disconnects == [connection]
        assert backlog.pending == 1

    def test_server_hangup(self):
        """
        The server hangs up on us part way through
        """
        server = self.nntp_server(articles=['a@example.com'])
        server.set_override({
            re.compile(r'^STAT <b@example.com>'): {
                'response': '400 Service discontinued',
                'hangup': True,
            },
        })

        backlog = NNTPArticleBacklog([
            '<a@example.com>', '<b@example.com>',
            '<c@example.com>', '<d@example.com>'])

        connection = NNTPConnection(
            server=NNTPServerConfig(host='127.0.0.1', port=server.port),
            backlog=backlog, manager=self.manager, timeout=5.0)

        connection.start()
        assert connection.join(timeout=10.0) is True
        assert backlog.is_complete() is False
        assert len(self.manager.errors) == 1
        assert isinstance(self.manager.errors[0], SocketException)
        assert self.manager.disconnects == [connection]

    def test_stop_after_start(self):
        """
        Stop a connection that never got a chance to run
        """
        connection = NNTPConnection(
            server=NNTPServerConfig(host='127.0.0.1', port=1),
            backlog=NNTPArticleBacklog(['<a@example.com>']),
            manager=self.manager)

        connection.start()
        connection.stop()

        assert connection.released is True
        assert connection.join(timeout=5.0) is True
        assert connection.state == NNTPConnectionState.CLOSED
        assert self.manager.errors == []
        assert self.manager.disconnects == [connection]

    def test_stop_while_connecting(self):
        """
        Abandon a connection attempt
        """
        connection = SlowNNTPConnection(
            server=NNTPServerConfig(host='127.0.0.1', port=1),
            backlog=NNTPArticleBacklog(['<a@example.com>']),
            manager=self.manager)

        connection.start()
        assert self.wait_for_state(
            connection, NNTPConnectionState.CONNECTING) is True

        connection.stop()
        assert connection.join(timeout=5.0) is True
        assert connection.state == NNTPConnectionState.CLOSED
        assert self.manager.errors == []
        assert self.manager.disconnects == [connection]

    def test_stop_during_handshake(self):
        """
        Abandon a connection that is still being secured
        """
        connection = SlowHandshakeNNTPConnection(
            server=NNTPServerConfig(host='127.0.0.1', port=1, secure=True),
            backlog=NNTPArticleBacklog(['<a@example.com>']),
            manager=self.manager)

        connection.start()
        assert self.wait_for_state(
            connection, NNTPConnectionState.TLS_HANDSHAKE) is True

        connection.stop()
        assert connection.join(timeout=5.0) is True
        assert connection.state == NNTPConnectionState.CLOSED
        assert self.manager.failed == []
        assert self.manager.errors == []
        assert self.manager.disconnects == [connection]

        # Stopping again changes nothing
        connection.stop()
        assert self.manager.disconnects == [connection]

    def test_stop_awaiting_greeting(self):
        """
        Stop a connection whose server never says hello
        """
        server = self.nntp_server(welcome=None)
        connection = NNTPConnection(
            server=NNTPServerConfig(host='127.0.0.1', port=server.port),
            backlog=NNTPArticleBacklog(['<a@example.com>']),
            manager=self.manager, timeout=5.0)

        connection.start()
        assert self.wait_for_state(
            connection, NNTPConnectionState.CONNECTED) is True

        connection.stop()
        assert connection.state == NNTPConnectionState.CLOSING

        # The server hangs up once we've closed our side
        assert connection.join(timeout=5.0) is True
        assert connection.state == NNTPConnectionState.CLOSED
        assert self.manager.errors == []
        assert self.manager.failed == []
        assert self.manager.disconnects == [connection]

    def test_stop_linger(self):
        """
        We don't wait forever for a server that won't hang up
        """
        server = self.nntp_server(welcome=None, hangup=False)
        connection = NNTPConnection(
            server=NNTPServerConfig(host='127.0.0.1', port=server.port),
            backlog=NNTPArticleBacklog(['<a@example.com>']),
            manager=self.manager, timeout=5.0)

        connection.start()
        assert self.wait_for_state(
            connection, NNTPConnectionState.CONNECTED) is True

        with mock.patch(
                'nzbcheck.NNTPConnection.NNTP_DISCONNECT_TIMEOUT', 0.5):
            connection.stop()

            # Still waiting on the server
            gevent.sleep(0.1)
            assert connection.released is False

            assert connection.join(timeout=5.0) is True

        assert connection.state == NNTPConnectionState.CLOSED
        assert self.manager.errors == []
        assert self.manager.disconnects == [connection]
