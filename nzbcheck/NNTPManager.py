# -*- coding: utf-8 -*-
#
# A manager that can control multiple NNTP connections and
# orchastrate them together in a single class
#
# Copyright (C) 2015-2017 Chris Caron <lead2gold@gmail.com>
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
from gevent.event import Event
from gevent.lock import Semaphore
from datetime import datetime

from nzbcheck.NNTPConnection import NNTPConnection
from nzbcheck.NNTPConnection import NNTPConnectionState
from nzbcheck.NNTPConnection import NNTP_DISCONNECT_TIMEOUT
from nzbcheck.NNTPArticleBacklog import NNTPArticleBacklog
from nzbcheck.NNTPArticleBacklog import BacklogAbortedException
from nzbcheck.NNTPSettings import NNTPSettings
from nzbcheck.SocketBase import DEFAULT_CONNECT_TIMEOUT

# Logging
import logging
from nzbcheck.Logging import NZBCHECK_ENGINE
logger = logging.getLogger(NZBCHECK_ENGINE)

# How often (in seconds) our inactivity watchdog looks at our connections
WATCHDOG_INTERVAL = 1.0


class ConnectionTracker(object):
    """
    Our Connection Tracking object we use to determine which connections
    are still alive.

    By keeping it in it's own object, it allows us to wrap communication to
    and from it with a mutex.  An event is set once the last connection we
    were tracking has disconnected.

    """

    def __init__(self):
        """
        Initialize our object
        """
        super(ConnectionTracker, self).__init__()

        self.lock = Semaphore(value=1)

        # Track our live connections
        self.alive = set()

        # Set when there is nobody left alive
        self.finished = Event()
        self.finished.set()

    def add(self, connection):
        """
        Starts tracking a connection
        """
        try:
            self.lock.acquire(blocking=True)
            self.alive.add(connection)
            self.finished.clear()

        finally:
            self.lock.release()

    def discard(self, connection):
        """
        Stops tracking a connection
        """
        try:
            self.lock.acquire(blocking=True)
            self.alive.discard(connection)
            if not self.alive:
                self.finished.set()

        finally:
            self.lock.release()

    def wait(self, timeout=None):
        """
        Blocks until all of our connections are gone; returns True if they
        are and False if we timed out waiting on them.
        """
        return self.finished.wait(timeout=timeout)

    def __len__(self):
        """
        Returns the number of connections still alive
        """
        return len(self.alive)


class NNTPManager(object):
    """
    Used to manage multiple NNTPConnections that all work through the same
    backlog of articles.

    Every enabled server gets as many connections as it was configured
    with; they all start at once and each one pulls work from the shared
    backlog until there is nothing left.

    NNTPManager() needs at least one enabled server to work with; these can
    be handed to us directly (as NNTPServerConfig() objects) or read from an
    NNTPSettings() object.

    """

    def __init__(self, servers=None, settings=None, backlog=None,
                 inactivity_timeout=None, timeout=None, *args, **kwargs):
        """
        Initialize the NNTPManager()
        """

        if servers is None:
            if settings is None:
                # Use defaults
                settings = NNTPSettings()

            servers = settings.servers()

            if inactivity_timeout is None:
                inactivity_timeout = \
                    settings.nntp_processing.get('inactivity_timeout')

            if timeout is None:
                timeout = settings.nntp_processing.get('timeout')

        # Only our enabled servers are of any interest to us
        self.servers = [s for s in servers if s.enabled]

        if not len(self.servers):
            logger.warning("There were no NNTP Servers defined to load.")
            raise AttributeError('No NNTP Servers Defined')

        # Our shared backlog
        self.backlog = backlog
        if self.backlog is None:
            self.backlog = NNTPArticleBacklog()

        # Connection timeout
        self.timeout = timeout if timeout else DEFAULT_CONNECT_TIMEOUT

        # How long a connection can go without hearing from its server
        self.inactivity_timeout = inactivity_timeout \
            if inactivity_timeout else None

        # Certificate Authorities to trust (used when verifying certificates)
        self.ca_certs = kwargs.get('ca_certs')

        # A connection pool of NNTPConnections
        self._pool = []

        # Keep track of the connections still alive
        self._tracker = ConnectionTracker()

        # Our inactivity watchdog (if enabled)
        self._watchdog = None

        # A list of (connection, error) tuples we were told about
        self.failures = []

    def spawn_connections(self):
        """
        Builds the connections for all of our enabled servers; returns the
        number of connections created.
        """
        _count = 0
        for server in self.servers:
            for _ in range(server.connections):
                connection = NNTPConnection(
                    server=server,
                    backlog=self.backlog,
                    manager=self,
                    connection_id=len(self._pool) + 1,
                    timeout=self.timeout,
                    ca_certs=self.ca_certs,
                )

                # Appened connection object to a pool
                self._pool.append(connection)
                _count += 1

        if _count > 0:
            logger.info("Loaded %d new connection(s)." % (_count))

        return _count

    @property
    def connections(self):
        return list(self._pool)

    def start(self):
        """
        Starts all of our connections (spawning them first if we haven't
        done so already).
        """
        if not self._pool:
            self.spawn_connections()

        for connection in self._pool:
            if connection.state != NNTPConnectionState.NOT_CONNECTED:
                # Already started
                continue

            # Track our connection before it gets a chance to disconnect
            self._tracker.add(connection)
            connection.start()

        if self.inactivity_timeout and self._watchdog is None:
            self._watchdog = gevent.spawn(self._watch)

        return len(self._tracker) > 0

    def wait(self, timeout=None):
        """
        Blocks until all of our connections have disconnected; returns True
        if they have and False if we timed out waiting.
        """
        result = self._tracker.wait(timeout=timeout)
        if result:
            self._stop_watchdog()

        return result

    def run(self, timeout=None):
        """
        Starts all of our connections and waits for them to finish; if
        they don't finish in time, we close them.

        Returns True if every article in our backlog was checked.
        """
        self.start()

        if not self.wait(timeout=timeout):
            logger.warning('Timed out waiting for connections to finish.')
            self.close()

        return self.backlog.is_complete()

    def close(self):
        """
        Stops all of our connections gracefully; nothing further is pulled
        from our backlog.
        """
        self.backlog.abort()

        for connection in self._pool:
            connection.stop()

        # Our connections never take longer than their linger time to
        # disconnect once they've been told to stop
        if not self._tracker.wait(timeout=NNTP_DISCONNECT_TIMEOUT * 2):
            logger.warning(
                '%d connection(s) failed to disconnect.' % len(self._tracker))

        self._stop_watchdog()

    def connection_failed(self, connection, error):
        """
        A connection was turned away by its server
        """
        logger.warning('Connection #%d to %s failed: %s' % (
            connection.connection_id, connection.host, str(error)))

        self.failures.append((connection, error))

    def connection_error(self, connection, error):
        """
        A connection ran into trouble
        """
        if isinstance(error, BacklogAbortedException):
            # We caused this by aborting our backlog
            logger.debug('Connection #%d aborted.' % connection.connection_id)
            return

        logger.warning('Connection #%d to %s had an error: %s' % (
            connection.connection_id, connection.host, str(error)))

        self.failures.append((connection, error))

    def disconnected(self, connection):
        """
        A connection has been released
        """
        self._tracker.discard(connection)

        logger.debug('Connection #%d disconnected (%d remaining).' % (
            connection.connection_id, len(self._tracker)))

    def _watch(self):
        """
        Our inactivity watchdog; connections that haven't heard from their
        server in too long are stopped.
        """
        while len(self._tracker):
            gevent.sleep(min(WATCHDOG_INTERVAL, self.inactivity_timeout))

            now = datetime.now()
            for connection in self._pool:
                if connection.released:
                    continue

                idle = (now - connection.last_activity).total_seconds()
                if idle > self.inactivity_timeout:
                    logger.warning(
                        'Connection #%d has been inactive for %ds; '
                        'stopping it.' % (connection.connection_id, idle))
                    connection.stop()

    def _stop_watchdog(self):
        """
        Stops our inactivity watchdog (if it's running)
        """
        if self._watchdog is not None:
            if self._watchdog is not gevent.getcurrent():
                self._watchdog.kill(block=False)
            self._watchdog = None

    def __len__(self):
        """
        Returns the number of connections we manage
        """
        return len(self._pool)
