#!/usr/bin/env python
# -*- coding: utf-8 -*-
#
# nzbcheck Command Line Interface (CLI)
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

# Type nzbcheck.py --help for command help.
#
# Successfully executed commands always return a zero (0) to the command
# line, otherwise a non-zero value is returned which identifies whether
# articles were missing (1) or could not all be checked (2).

# This monkey patching must be done before anything else is imported
import gevent.monkey
gevent.monkey.patch_all()

import sys
from os.path import abspath
from os.path import dirname

# Path
try:
    from nzbcheck.cli import main

except ImportError:
    sys.path.insert(0, dirname(dirname(abspath(__file__))))
    from nzbcheck.cli import main


if __name__ == '__main__':
    main()
