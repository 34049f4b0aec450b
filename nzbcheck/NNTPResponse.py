# -*- coding: utf-8 -*-
#
# A Response Line (and its code) received from an NNTP Server
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

# Splits a response line into its code and the text that follows it
NNTP_RESPONSE_RE = re.compile(r'^\s*(?P<code>[0-9]{3})\s*(?P<desc>.*)$')


class NNTPResponseCode(object):
    """
    A Simple lookup table that makes the codes returned by the NNTP
    server a bit more human readable.  These codes are based on:
       - http://tools.ietf.org/html/rfc3977
       - http://tools.ietf.org/html/rfc4643

    Only the codes we actually react to are listed here.
    """

    # 200 Service available, posting allowed
    SERVICE_READY = '200'

    # 381 More authentication information required
    # Matched against the first 2 characters only
    AUTH_CONTINUE = '38'

    # 281 Authentication accepted
    # Matched against the first 2 characters only
    AUTH_ACCEPTED = '28'

    # 430 No article with that message-id
    NO_SUCH_ARTICLE = '430'


class NNTPResponse(object):
    """
    A single line received from the NNTP Server (without its line ending).
    """

    def __init__(self, line):
        if isinstance(line, bytes):
            # Response lines are plain ASCII; anything else is just
            # carried along for logging purposes
            line = line.decode('utf-8', 'replace')

        self.line = line.rstrip('\r\n')

        result = NNTP_RESPONSE_RE.match(self.line)
        if result:
            self.code = int(result.group('code'))
            self.code_str = result.group('desc')

        else:
            self.code = 0
            self.code_str = self.line

    def matches(self, prefix):
        """
        Returns True if our line starts with the prefix specified; the
        prefix is one of the NNTPResponseCode entries.
        """
        return self.line[0:len(prefix)] == prefix

    def __str__(self):
        return self.line

    def __repr__(self):
        """
        Return a printable object
        """
        return '<NNTPResponse code=%d message="%s" />' % (
            self.code,
            self.code_str,
        )
