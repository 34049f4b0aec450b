# -*- coding: utf-8 -*-
#
# Describes a single NNTP Server we want to check articles against
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

from nzbcheck.Utils import parse_bool

# Ports used by NNTP Servers
NNTP_PORT = 119
NNTP_SSL_PORT = 563

# The keywords an NNTPServerConfig() can be built from; this is also the
# list of keys we pluck out of a server entry in the configuration file.
SERVER_CONFIG_KEYWORDS = (
    'host', 'port', 'secure', 'verify_cert', 'username', 'password',
    'connections', 'enabled',
)


def _parse_int(value):
    """
    Returns value as an int, or None if it isn't a whole number.  Booleans
    and floats are never accepted (int() would happily truncate them).
    """
    if isinstance(value, (bool, float)):
        return None

    try:
        return int(value)

    except (TypeError, ValueError):
        return None


class NNTPServerConfig(object):
    """
    An immutable description of one NNTP Server target.

    Every NNTPConnection() is handed one of these; since many connections
    share the same configuration it can not be changed once it's built.
    Any attempt to do so raises an AttributeError.

    Bad entries raise a ValueError when the object is constructed so that
    nothing downstream ever has to second guess what it was given.
    """

    def __init__(self, host=None, port=None, secure=False, username=None,
                 password=None, connections=1, enabled=True,
                 verify_cert=False):

        if not isinstance(host, str) or not host.strip():
            raise ValueError('An invalid host (%s) was specified.' % host)

        secure = parse_bool(secure)

        if port is None or port == '':
            port = NNTP_SSL_PORT if secure else NNTP_PORT

        _port = _parse_int(port)
        if _port is None or _port <= 0 or _port > 65535:
            raise ValueError('An invalid port (%s) was specified.' % (port, ))
        port = _port

        _connections = _parse_int(connections)
        if _connections is None or _connections < 1:
            raise ValueError(
                'An invalid connection count (%s) was specified.' % (
                    connections, ))
        connections = _connections

        # Credentials are only used if a username was provided
        if username is not None:
            username = str(username).strip()

        if not username:
            username = None
            password = None

        elif password is None:
            password = ''

        else:
            password = str(password)

        # Store our content (bypassing our own __setattr__ guard)
        self.__dict__.update({
            'host': host.strip(),
            'port': port,
            'secure': secure,
            'verify_cert': parse_bool(verify_cert),
            'username': username,
            'password': password,
            'connections': connections,
            'enabled': parse_bool(enabled, default=True),
        })

    @classmethod
    def from_dict(cls, entry):
        """
        Builds an NNTPServerConfig() from a dictionary (such as one read from
        our YAML configuration).  Keys we don't know about are ignored.
        """
        return cls(**dict(
            (k, v) for k, v in entry.items()
            if k in SERVER_CONFIG_KEYWORDS and v is not None))

    def as_dict(self):
        """
        Returns our configuration as a dictionary; handy if you want to
        build a new NNTPServerConfig() that differs from this one slightly.
        """
        return dict((k, getattr(self, k)) for k in SERVER_CONFIG_KEYWORDS)

    def has_auth(self):
        """
        Returns True if credentials were configured for this server
        """
        return self.username is not None

    def url(self):
        """
        Returns a printable (password free) url of the server
        """
        return '%s://%s%s:%d' % (
            'nntps' if self.secure else 'nntp',
            '%s@' % self.username if self.username else '',
            self.host,
            self.port,
        )

    def __setattr__(self, name, value):
        raise AttributeError(
            "NNTPServerConfig() is read-only; can't set '%s'." % name)

    def __delattr__(self, name):
        raise AttributeError(
            "NNTPServerConfig() is read-only; can't delete '%s'." % name)

    def __eq__(self, other):
        if not isinstance(other, NNTPServerConfig):
            return False
        return self.__dict__ == other.__dict__

    def __hash__(self):
        return hash((self.host, self.port, self.secure, self.username))

    def __str__(self):
        if self.has_auth():
            return '[%dcon%s on %s:****@%s:%d enabled:%d]' % (
                self.connections,
                ' SSL' if self.secure else '',
                self.username,
                self.host,
                self.port,
                self.enabled,
            )

        return '[%dcon%s on %s:%d enabled:%d]' % (
            self.connections,
            ' SSL' if self.secure else '',
            self.host,
            self.port,
            self.enabled,
        )

    def __repr__(self):
        """
        Return a printable object
        """
        return '<NNTPServerConfig url="%s" connections=%d />' % (
            self.url(),
            self.connections,
        )
