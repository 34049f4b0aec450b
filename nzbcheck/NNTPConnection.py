# -*- coding: utf-8 -*-
#
# Checks whether articles exist on an NNTP Server over a single connection
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

import gevent
from gevent import Timeout
from datetime import datetime

from nzbcheck.NNTPResponse import NNTPResponse
from nzbcheck.NNTPResponse import NNTPResponseCode
from nzbcheck.NNTPArticleBacklog import BacklogAbortedException
from nzbcheck.SocketBase import SocketBase
from nzbcheck.SocketBase import SocketException
from nzbcheck.SocketBase import SecureSocketException
from nzbcheck.SocketBase import DEFAULT_CONNECT_TIMEOUT

# Logging
import logging
from nzbcheck.Logging import NZBCHECK_ENGINE
logger = logging.getLogger(NZBCHECK_ENGINE)

# Defines the end of line delimiter
EOL = '\r\n'

# The number of seconds we wait for the remote server to hang up after
# we've told it we're done writing
NNTP_DISCONNECT_TIMEOUT = 5.0

# A response line never gets anywhere near this long; if it does then
# we're not talking to an NNTP Server
MAX_LINE_LENGTH = 65536


class NNTPConnectionException(Exception):
    """
    The base of all errors an NNTPConnection() hands to its owner
    """
    pass


class NNTPGreetingException(NNTPConnectionException):
    """
    The server did not welcome us the way we expected it to
    """
    pass


class NNTPAuthException(NNTPConnectionException):
    """
    The server rejected our AUTHINFO USER or AUTHINFO PASS
    """
    pass


class NNTPProtocolException(NNTPConnectionException):
    """
    The server sent us something that can't be an NNTP response
    """
    pass


class NNTPConnectionState(object):
    """
    The states an NNTPConnection() passes through during its lifetime; a
    connection is only ever in one of them at a time.
    """
    NOT_CONNECTED = 'not_connected'
    CONNECTING = 'connecting'
    TLS_HANDSHAKE = 'tls_handshake'
    CONNECTED = 'connected'
    AUTH_USER = 'auth_user'
    AUTH_PASS = 'auth_pass'
    IDLE = 'idle'
    CHECKING_ARTICLE = 'checking_article'
    CLOSING = 'closing'
    CLOSED = 'closed'


class NNTPConnection(SocketBase):
    """
        NNTPConnection checks articles pulled from a shared backlog
        against one NNTP Server.

        - start() spawns a greenlet that connects to the server, secures
          the connection (if configured to), reads the welcome message
          and authenticates (if credentials were provided).

        - Then one article at a time is pulled from the backlog and looked
          up with the STAT command.  A 430 response means the article is
          missing; anything else means it exists.

        - Once the backlog is empty, the connection is closed gracefully.

        Everything the server sends us is handled by data_received() which
        drives the state machine one complete line at a time.  Nothing is
        ever raised to the caller; instead the owner (manager) is told about
        what happened through the following (optional) functions:

            connection_failed(connection, error)
                The greeting or authentication was rejected.

            connection_error(connection, error)
                A socket, TLS, protocol or backlog error occurred.

            disconnected(connection)
                The connection has been released.  This is always the
                very last thing we do and it is only done once.
    """

    def __init__(self, server, backlog, manager=None, connection_id=1,
                 timeout=DEFAULT_CONNECT_TIMEOUT, *args, **kwargs):
        """
        Initialize NNTP Connection

        server is the NNTPServerConfig() we connect to and backlog is the
        NNTPArticleBacklog() we pull our articles from.
        """

        # Initialize the Socket Base Class
        super(NNTPConnection, self).__init__(
            host=server.host,
            port=server.port,
            secure=server.secure,
            verify_cert=server.verify_cert,
            *args, **kwargs
        )

        # Store our server configuration
        self.server = server

        # Where our work comes from (and our results go)
        self.backlog = backlog

        # Who we report to
        self.manager = manager

        # Our identifier (used in our logging)
        self.connection_id = connection_id

        # Connection timeout
        self.timeout = timeout

        # Our current state
        self.state = NNTPConnectionState.NOT_CONNECTED

        # The article we're currently waiting to hear back on
        self.article = None

        # Unprocessed data read from the server
        self._buffer = bytearray()

        # Our greenlet (created by start())
        self._greenlet = None

        # Our linger timer; it ensures we don't wait forever for a server
        # to hang up on us after stop() was called
        self._linger = None

        # Set once our resources have been released
        self._released = False

        # Used by an inactivity watchdog (if one is watching us)
        self.last_activity = datetime.now()

    def start(self):
        """
        Spawns the greenlet that runs our connection and returns
        immediately.  Returns False if we were already started.
        """
        if self._greenlet is not None or \
                self.state != NNTPConnectionState.NOT_CONNECTED:
            return False

        self._greenlet = gevent.spawn(self._run)
        return True

    def stop(self):
        """
        Requests our connection to be closed.

        This can be called at any time, from anywhere, as often as you
        like.  If we're still connecting (or securing our connection) the
        attempt is abandoned.  Otherwise we tell the server we're done
        and give it a short while to hang up on us.
        """
        if self.state in (NNTPConnectionState.CLOSING,
                          NNTPConnectionState.CLOSED):
            # Nothing more to do
            return

        logger.debug('[Con #%d] Stop requested.' % self.connection_id)

        if self.state == NNTPConnectionState.NOT_CONNECTED:
            # Our greenlet never got going (if it was even created)
            if self._greenlet is not None:
                self._greenlet.kill(block=False)
            self._release()
            return

        if self.state in (NNTPConnectionState.CONNECTING,
                          NNTPConnectionState.TLS_HANDSHAKE):
            # Abandon our connection attempt; our greenlet releases
            # everything on its way out
            self._set_state(NNTPConnectionState.CLOSING)
            if self._greenlet is not None and \
                    self._greenlet is not gevent.getcurrent():
                self._greenlet.kill(block=False)
            return

        self._begin_close()

        if self._greenlet is not None and not self._released and \
                self._greenlet is not gevent.getcurrent():
            # Our greenlet could be blocked on a read that won't return
            # until the server hangs up
            self._linger = gevent.spawn_later(
                NNTP_DISCONNECT_TIMEOUT, self._linger_expired)

    def join(self, timeout=None):
        """
        Blocks until our connection has been released (or the timeout
        specified elapses).  Returns True if we were released.
        """
        if self._greenlet is not None:
            self._greenlet.join(timeout=timeout)

        return self._released

    @property
    def released(self):
        return self._released

    def connection_made(self):
        """
        Called once our connection is established (and secured if it
        needed to be); we now wait for the server to welcome us.
        """
        self._set_state(NNTPConnectionState.CONNECTED)
        logger.info('[Con #%d] Connected to %s:%d' % (
            self.connection_id, self.host, self.port))

    def data_received(self, data):
        """
        Processes data received from the server; every complete line
        buffered is handled (one at a time and in order) before we return.
        Partial lines are held onto until the rest of them arrives.
        """
        self.last_activity = datetime.now()

        if self.state in (NNTPConnectionState.CLOSING,
                          NNTPConnectionState.CLOSED):
            # We're not interested in anything else the server has to say
            logger.debug('[Con #%d] Dropping %d byte(s) received while %s.' % (
                self.connection_id, len(data), self.state))
            return

        self._buffer.extend(data)

        while True:
            if self.state in (NNTPConnectionState.CLOSING,
                              NNTPConnectionState.CLOSED):
                if self._buffer:
                    logger.debug(
                        '[Con #%d] Dropping unprocessed response data.' %
                        self.connection_id)
                    self._buffer = bytearray()
                return

            idx = self._buffer.find(b'\n')
            if idx < 0:
                break

            line = bytes(self._buffer[:idx])
            del self._buffer[:idx + 1]

            try:
                self.line_received(NNTPResponse(line))

            except SocketException as e:
                # We couldn't write our reply back to the server
                self._error_close(e, release=True)
                return

        if len(self._buffer) > MAX_LINE_LENGTH:
            self._buffer = bytearray()
            self._error_close(NNTPProtocolException(
                'Response line from %s:%d exceeded %d bytes.' % (
                    self.host, self.port, MAX_LINE_LENGTH)))

    def line_received(self, response):
        """
        Drives our state machine using one response line
        """
        logger.debug('[Con #%d] Received: %s' % (
            self.connection_id, response))

        if self.state == NNTPConnectionState.CONNECTED:
            if not response.matches(NNTPResponseCode.SERVICE_READY):
                self._fail(NNTPGreetingException(
                    'Unexpected greeting from server %s:%d: %s' % (
                        self.host, self.port, response)))
                return

            if not self.server.has_auth():
                self._set_state(NNTPConnectionState.IDLE)
                self._check_next_article()
                return

            self._set_state(NNTPConnectionState.AUTH_USER)
            self.send('AUTHINFO USER %s%s' % (self.server.username, EOL))

        elif self.state == NNTPConnectionState.AUTH_USER:
            if not response.matches(NNTPResponseCode.AUTH_CONTINUE):
                self._fail(NNTPAuthException(
                    "Error sending user '%s' to server %s:%d: %s" % (
                        self.server.username, self.host, self.port,
                        response)))
                return

            self._set_state(NNTPConnectionState.AUTH_PASS)
            self.send('AUTHINFO PASS %s%s' % (self.server.password, EOL))

        elif self.state == NNTPConnectionState.AUTH_PASS:
            if not response.matches(NNTPResponseCode.AUTH_ACCEPTED):
                self._fail(NNTPAuthException(
                    "Error authenticating user '%s' on server %s:%d: %s" % (
                        self.server.username, self.host, self.port,
                        response)))
                return

            logger.info('[Con #%d] Authenticated as %s.' % (
                self.connection_id, self.server.username))

            self._set_state(NNTPConnectionState.IDLE)
            self._check_next_article()

        elif self.state == NNTPConnectionState.CHECKING_ARTICLE:
            article = self.article
            self.article = None

            if response.matches(NNTPResponseCode.NO_SUCH_ARTICLE):
                self.backlog.report_missing(article)

            self.backlog.report_checked()

            self._set_state(NNTPConnectionState.IDLE)
            self._check_next_article()

        else:
            logger.debug('[Con #%d] Ignoring response received while %s.' % (
                self.connection_id, self.state))

    def connection_lost(self):
        """
        Called once the server has closed its end of our connection.
        """
        if self._buffer:
            # Never process a partial line
            logger.debug('[Con #%d] Discarding %d byte(s) of partial data.' % (
                self.connection_id, len(self._buffer)))
            self._buffer = bytearray()

        if self.state not in (NNTPConnectionState.CLOSING,
                              NNTPConnectionState.CLOSED):
            self._report('connection_error', SocketException(
                'Connection closed by server %s:%d' % (self.host, self.port)))

        self._release()

    def _run(self):
        """
        The body of our greenlet
        """
        try:
            self._set_state(NNTPConnectionState.CONNECTING)
            self.connect(timeout=self.timeout)

            if self.secure:
                self._set_state(NNTPConnectionState.TLS_HANDSHAKE)
                self.encrypt(timeout=self.timeout)

            if self.state == NNTPConnectionState.CLOSING:
                # We were asked to stop while connecting
                return

            self.connection_made()

            while self.socket is not None:
                if self.state == NNTPConnectionState.CLOSING:
                    # We're waiting on the server to hang up; but we
                    # won't wait forever
                    data = None
                    with Timeout(NNTP_DISCONNECT_TIMEOUT, False):
                        data = self.read()

                    if data is None:
                        logger.debug(
                            '[Con #%d] Timed out waiting for %s:%d to '
                            'disconnect.' % (
                                self.connection_id, self.host, self.port))
                        break

                else:
                    data = self.read()

                if not data:
                    self.connection_lost()
                    break

                self.data_received(data)

        except SecureSocketException as e:
            if self.state in (NNTPConnectionState.CLOSING,
                              NNTPConnectionState.CLOSED):
                logger.debug('[Con #%d] Ignoring error while %s: %s' % (
                    self.connection_id, self.state, e))

            else:
                logger.error('[Con #%d] Error SSL Socket: %s' % (
                    self.connection_id, e))
                self._report('connection_error', e, log=False)

        except SocketException as e:
            if self.state in (NNTPConnectionState.CLOSING,
                              NNTPConnectionState.CLOSED):
                logger.debug('[Con #%d] Ignoring error while %s: %s' % (
                    self.connection_id, self.state, e))

            elif self.state == NNTPConnectionState.CONNECTING:
                logger.error(
                    '[Con #%d] Error connecting to server %s:%d: %s' % (
                        self.connection_id, self.host, self.port, e))
                self._report('connection_error', e, log=False)

            else:
                logger.error('[Con #%d] Error Socket: %s' % (
                    self.connection_id, e))
                self._report('connection_error', e, log=False)

        finally:
            self._release()

    def _check_next_article(self):
        """
        Pulls the next article from the backlog and asks the server about
        it; if there is nothing left to check, we close our connection.
        """
        try:
            article = self.backlog.pull_next()

        except BacklogAbortedException as e:
            self._error_close(e)
            return

        if article is None:
            logger.info('[Con #%d] No more articles to check.' % (
                self.connection_id))
            self._begin_close()
            return

        self.article = article
        self._set_state(NNTPConnectionState.CHECKING_ARTICLE)
        logger.debug('[Con #%d] Checking article %s' % (
            self.connection_id, article))

        self.send('STAT %s%s' % (article, EOL))

    def _fail(self, error):
        """
        The server turned us away (bad greeting or authentication)
        """
        self._report('connection_failed', error)
        self._begin_close()

    def _error_close(self, error, release=False):
        """
        Reports an error and closes our connection; if release is set then
        our connection is considered unusable and is released right away.
        """
        self._report('connection_error', error)
        if release:
            self._set_state(NNTPConnectionState.CLOSING)
            self._release()
            return

        self._begin_close()

    def _begin_close(self):
        """
        Tells the server we're done with it (by closing our side of the
        connection).  If we never got connected there is nobody to tell,
        so we just release what we've got.
        """
        if self.state in (NNTPConnectionState.CLOSING,
                          NNTPConnectionState.CLOSED):
            return

        self._set_state(NNTPConnectionState.CLOSING)
        self.article = None
        self._buffer = bytearray()

        if not self.connected:
            self._release()
            return

        self.shutdown()

    def _linger_expired(self):
        """
        The server never hung up on us after stop() was called
        """
        if self._released:
            return

        logger.debug('[Con #%d] Forcing disconnect from %s:%d.' % (
            self.connection_id, self.host, self.port))

        if self._greenlet is not None and not self._greenlet.dead:
            # Our greenlet releases everything on its way out
            self._greenlet.kill(block=False)
            return

        self._release()

    def _release(self):
        """
        Closes our socket and lets our owner know we're done; this only
        ever happens once.
        """
        if self._released:
            return

        self._released = True

        if self._linger is not None:
            if self._linger is not gevent.getcurrent():
                self._linger.kill(block=False)
            self._linger = None

        self.close()
        self.article = None
        self._buffer = bytearray()

        self._set_state(NNTPConnectionState.CLOSED)
        logger.info('[Con #%d] Disconnected from %s:%d' % (
            self.connection_id, self.host, self.port))

        self._report('disconnected', log=False)

    def _report(self, name, error=None, log=True):
        """
        Notifies our owner (if it wants to know)
        """
        if log and error is not None:
            logger.error('[Con #%d] %s' % (self.connection_id, error))

        callback = getattr(self.manager, name, None)
        if not callable(callback):
            return

        if error is None:
            callback(self)

        else:
            callback(self, error)

    def _set_state(self, state):
        """
        Changes our state
        """
        if state == self.state:
            return

        logger.debug('[Con #%d] %s -> %s' % (
            self.connection_id, self.state, state))

        self.state = state
        self.last_activity = datetime.now()

    def __str__(self):
        return '%s://%s%s:%d' % (
            'nntps' if self.secure else 'nntp',
            '%s@' % self.server.username if self.server.username else '',
            self.host, self.port)

    def __repr__(self):
        """
        Return a printable object
        """
        return '<NNTPConnection id=%d url="%s" state=%s />' % (
            self.connection_id,
            str(self),
            self.state,
        )
