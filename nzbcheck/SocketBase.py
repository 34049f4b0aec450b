# -*- coding: utf-8 -*-
#
# A Low Level Socket Manager
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

from gevent import socket
from gevent import ssl
from gevent import Timeout

from cryptography import x509

# Logging
import logging
from nzbcheck.Logging import NZBCHECK_ENGINE
logger = logging.getLogger(NZBCHECK_ENGINE)

# Number of seconds to wait for a connection to be established (or
# secured) before failing out right
DEFAULT_CONNECT_TIMEOUT = 30.0

# The largest chunk we'll ever pull off of the wire in one read
DEFAULT_READ_SIZE = 32768


class SocketException(Exception):
    """generic socket manager exception class"""
    pass


class SecureSocketException(SocketException):
    """
    Thrown if the TLS handshake fails or the certificate presented by
    the remote server could not be accepted
    """
    pass


class SocketBase(object):
    """
       A client side socket built on gevent; everything that blocks only
       blocks the greenlet calling it.

       Arguments to initialize a SocketBase:

            host            the host to connect to

            port            int

            secure          Layer TLS on top of the connection once it
                            has been established.

            verify_cert     Validate the certificate chain and hostname
                            presented by the remote server (only applies
                            to secure connections).

            ca_certs        Optionally identify a file containing the
                            certificate authorities to trust when verifying
                            certificates; the system defaults are used
                            otherwise.

    """
    def __init__(self, host=None, port=0, secure=False, verify_cert=False,
                 ca_certs=None, *args, **kwargs):

        self.host = host
        self.port = int(port)

        self.connected = False
        self.secure = bool(secure)
        self.verify_cert = bool(verify_cert)

        self.socket = None

        # A spot we can store our peer certificate; this is only used
        # if we're dealing with a secure connection
        self.peer_certificate = None

        # CA stands for Certificate Authority (for those reading this code)
        self._ca_certs = ca_certs

        # For Statistics
        self.bytes_in = 0
        self.bytes_out = 0

        # Calculated through connections
        self._local_addr = None
        self._local_port = None
        self._remote_addr = None
        self._remote_port = None

    def connect(self, timeout=DEFAULT_CONNECT_TIMEOUT):
        """
        Establishes a TCP connection to our host and port.

        The socket is configured with SO_KEEPALIVE and TCP_NODELAY since
        we only ever send small commands and wait on their reply.

        A SocketException() is thrown if the connection can't be made
        within the timeout specified.
        """

        # Ensure we are not connected
        self.close()

        logger.debug("Connecting to host: %s:%d" % (
            self.host,
            self.port,
        ))

        try:
            self.socket = socket.create_connection(
                (self.host, self.port), timeout=timeout)

        except socket.timeout:
            raise SocketException('Connection timeout')

        except (socket.error, socket.gaierror) as e:
            logger.debug("Socket exception received: %s" % (e))
            raise SocketException(str(e))

        try:
            # Keep alive flag
            self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)

            # Small writes go out immediately
            self.socket.setsockopt(
                socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

            # From here on reads only ever block our own greenlet
            self.socket.settimeout(None)

            # Store local details of our socket
            (self._local_addr, self._local_port) = \
                self.socket.getsockname()[0:2]
            (self._remote_addr, self._remote_port) = \
                self.socket.getpeername()[0:2]

        except socket.error as e:
            self.close()
            raise SocketException(str(e))

        logger.info(
            "Connection established to %s:%d" % (
                self._remote_addr,
                self._remote_port,
            ))

        self.connected = True
        return True

    def encrypt(self, timeout=DEFAULT_CONNECT_TIMEOUT):
        """
        Wrap our existing connection with TLS (changing it into an
        SSLSocket Object) and perform the handshake.

        If we were told to verify certificates, then the chain and
        hostname must check out; otherwise anything presented to us is
        accepted (but still logged).

        This function has no return value; it either encrypts the socket
        or throws a SecureSocketException() error.
        """
        if self.socket is None:
            # Nothing to do if we have no socket to work with
            raise SocketException("No connection")

        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        if self.verify_cert:
            context.check_hostname = True
            context.verify_mode = ssl.CERT_REQUIRED
            if self._ca_certs:
                context.load_verify_locations(cafile=self._ca_certs)

            else:
                context.load_default_certs()

        else:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        try:
            self.socket = context.wrap_socket(
                self.socket,
                server_hostname=self.host,
                do_handshake_on_connect=False,
                suppress_ragged_eofs=True,
            )

            with Timeout(timeout, SecureSocketException(
                    'Secure connection timeout')):
                # This command does a lot of the magic
                self.socket.do_handshake()

        except ssl.SSLError as e:
            self.close()
            raise SecureSocketException(str(e))

        except (socket.error, ValueError) as e:
            self.close()
            raise SecureSocketException(str(e))

        except SecureSocketException:
            self.close()
            raise

        logger.info("Secured connection to %s:%d using %s." % (
            self.host, self.port, self.socket.version()))

        # Store our peer certificate; there is always a binary form even
        # when we never asked for it to be verified
        binary_cert = self.socket.getpeercert(binary_form=True)
        try:
            if not binary_cert:
                raise ValueError('No certificate was presented')

            self.peer_certificate = \
                x509.load_der_x509_certificate(binary_cert)

        except ValueError:
            # we couldn't acquire the certificate
            self.peer_certificate = None
            if self.verify_cert:
                self.close()
                raise SecureSocketException(
                    "Could not acquire site certificate.")

            logger.warning("Could not acquire site certificate.")
            return

        logger.debug("Peer certificate: subject=%s, expires=%s" % (
            self.peer_certificate.subject.rfc4514_string(),
            self.peer_certificate.not_valid_after_utc.isoformat(),
        ))

    def read(self, max_bytes=DEFAULT_READ_SIZE):
        """
        Blocks (our greenlet only) until data arrives and returns it.

        An empty bytes object is returned once the remote end closed its
        side of the connection.  A SocketException() is raised if the
        connection is broken.

        Once a secure connection has been half-closed with shutdown(), the
        TLS layer is gone and what is read back is the raw stream; it's
        only good for draining the connection until the remote end hangs up.
        """
        if self.socket is None:
            # No connection
            return b''

        try:
            data = self.socket.recv(max_bytes)

        except ssl.SSLZeroReturnError:
            # The TLS layer was closed cleanly by our peer
            data = b''

        except ssl.SSLError as e:
            raise SecureSocketException(str(e))

        except (socket.error, ValueError) as e:
            raise SocketException(str(e))

        # Statistical Purposes
        self.bytes_in += len(data)
        return data

    def send(self, data):
        """
        Sends all of the data specified (blocking our greenlet until it's
        gone); a SocketException() is raised if the connection is broken.
        """
        if self.socket is None:
            raise SocketException('No connection')

        if isinstance(data, str):
            data = data.encode('utf-8')

        try:
            self.socket.sendall(data)

        except ssl.SSLError as e:
            raise SecureSocketException(str(e))

        except socket.error as e:
            raise SocketException(str(e))

        # Statistical Purposes
        self.bytes_out += len(data)
        return len(data)

    def shutdown(self):
        """
        Half-closes the connection; we stop writing, but we can still read
        whatever our peer sends until it closes its end.
        """
        if self.socket is None:
            return False

        try:
            self.socket.shutdown(socket.SHUT_WR)

        except socket.error as e:
            # Typically ENOTCONN; the remote end is already gone
            logger.debug("Socket shutdown error: %s" % (e))
            return False

        return True

    def close(self):
        """
        Closes our socket (if open); it is safe to call this as often as
        you want.
        """
        if self.socket is not None:
            try:
                self.socket.close()

            except socket.error as e:
                logger.debug("Socket close error: %s" % (e))

            # Remove Socket Reference
            self.socket = None

        # update connection flag
        self.connected = False

        # reset our peer certificate
        self.peer_certificate = None

        # Calculated through connections
        self._remote_addr = None
        self._remote_port = None

    def local_connection_info(self):
        """
        Returns a tuple of the local address and port used by our
        connection.

        If no connection has been established, None is returned.
        """
        if self.socket is None:
            return None

        return (self._local_addr, self._local_port)

    def remote_connection_info(self):
        """
        Returns a tuple of the remote address and port we're connected to.

        If no connection has been established, None is returned.
        """
        if self.socket is None:
            return None

        return (self._remote_addr, self._remote_port)

    def __str__(self):
        return '%s://%s:%d' % (
            'tcps' if self.secure else 'tcp', self.host, self.port)
