# -*- coding: utf-8 -*-
#
# A simple collection of general functions
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

# Message-ID's are sometimes handed to us without their enclosing angle
# brackets (as found in an NZB-File <segment/> entry)
MESSAGE_ID_RE = re.compile(r'^\s*<?\s*(?P<id>[^<>\s]+)\s*>?\s*$')


def parse_bool(arg, default=False):
    """
    Parses strings such as 'yes' and 'no' as well as other strings such as
    'on' or 'off' , 'enable' or 'disable', etc.

    This method can just simplify checks to these variables.

    If the content could not be parsed, then the default is
    returned.
    """

    if isinstance(arg, str):
        # no = no - False
        # of = short for off - False
        # 0  = int for False
        # fa = short for False - False
        # f  = short for False - False
        # n  = short for No or Never - False
        # ne  = short for Never - False
        # di  = short for Disable(d) - False
        # de  = short for Deny - False
        if arg.lower()[0:2] in ('de', 'di', 'ne', 'f', 'n', 'no', 'of',
                                '0', 'fa'):
            return False
        # ye = yes - True
        # on = short for off - True
        # 1  = int for True
        # tr = short for True - True
        # t  = short for True - True
        # al = short for Always (and Allow) - True
        # en  = short for Enable(d) - True
        elif arg.lower()[0:2] in ('en', 'al', 't', 'y', 'ye', 'on', '1',
                                  'tr'):
            return True
        # otherwise
        return default

    if arg is None:
        return default

    # Handle other types
    return bool(arg)


def normalize_message_id(message_id):
    """
    Returns the Message-ID enclosed in angle brackets (the way the STAT
    command expects it), or None if what was passed in can't possibly
    be one.
    """
    if not isinstance(message_id, str):
        return None

    match = MESSAGE_ID_RE.match(message_id)
    if not match:
        return None

    return '<%s>' % match.group('id')


def parse_seconds(arg):
    """
    Parses a duration (in seconds) such as one read from our configuration
    file; strings such as '30' or '2.5' are accepted too.

    None (or an empty string) is returned as None.  A ValueError is thrown
    if the content can't be a positive number of seconds.
    """
    if arg is None or (isinstance(arg, str) and not arg.strip()):
        return None

    if isinstance(arg, bool):
        # True and False are technically integers; but not durations
        raise ValueError('%s is not a number of seconds' % arg)

    try:
        seconds = float(arg)

    except (TypeError, ValueError):
        raise ValueError('%s is not a number of seconds' % (arg, ))

    if seconds != seconds or seconds <= 0.0 or seconds == float('inf'):
        raise ValueError('%s is not a positive number of seconds' % arg)

    return seconds
