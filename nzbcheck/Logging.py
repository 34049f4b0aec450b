# -*- coding: utf-8 -*-
#
# Common Logging Parameters and Defaults
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

# The first part of the file defines all of the namespacing
# used by this application

import sys
import logging
from logging.handlers import RotatingFileHandler

# The default logger identifier used for general logging
NZBCHECK_LOGGER = 'nzbcheck'

# The default logger which displays backend engine and
# NNTP Server Interaction
NZBCHECK_ENGINE = '%s.engine' % NZBCHECK_LOGGER

# Command Line Interface Logger
NZBCHECK_CLI = '%s.cli' % NZBCHECK_LOGGER

# The number of bytes reached before automatically rotating the log file
# if this option was specified
# 5000000 bytes == 5 Megabytes
LOG_ROTATE_FILESIZE_BYTES = 5000000


def add_handler(logger, sendto=True, backupCount=5):
    """
    Add handler to idenfied logger
        sendto == None then logging is disabled
        sendto == True then logging is put to stdout
        sendto == False then logging is put to stderr
        sendto == <string> then logging is routed to the filename specified

        if sendto is a <string>, then backupCount defines the number of logs
        to keep around.  Set this to 0 or None if you don't wish the python
        logger to backupCount the files ever. By default logs are rotated
        once they reach 5MB

    """
    if sendto is True:
        # redirect to stdout
        handler = logging.StreamHandler(sys.stdout)

    elif sendto is False:
        # redirect to stderr
        handler = logging.StreamHandler(sys.stderr)

    elif sendto is None:
        # redirect to null
        handler = logging.NullHandler()

        # Set data to NOTSET just to eliminate the
        # extra checks done internally
        if logger.level != logging.NOTSET:
            logger.setLevel(logging.NOTSET)

    elif isinstance(sendto, str):
        if not backupCount:
            handler = logging.FileHandler(filename=sendto)

        else:
            handler = RotatingFileHandler(
                filename=sendto,
                maxBytes=LOG_ROTATE_FILESIZE_BYTES,
                backupCount=backupCount,
            )

    else:
        # We failed to add a handler
        return False

    # Setup Log Format
    handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s %(name)s %(message)s'))

    # Add Handler
    logger.addHandler(handler)

    return True


def init(verbose=2, sendto=True, backupCount=5):
    """
    Set's up some simple default handling to make it
    easier for those wrapping this library.

    You do not need to call this function if you
    don't wnat to; ideally one might want to set up
    things their own way.
    """
    add_handler(
        logging.getLogger(NZBCHECK_LOGGER),
        sendto=sendto,
        backupCount=backupCount,
    )

    if verbose:
        set_verbosity(verbose=verbose)


def set_verbosity(verbose):
    """
    A simple function one can use to set the verbosity of
    the app.

    The engine logger is where the per-connection traces ([Con #n] ...)
    are written; they only surface once the verbosity reaches 2.
    """
    # Default
    logging.getLogger(NZBCHECK_LOGGER).setLevel(logging.ERROR)
    logging.getLogger(NZBCHECK_CLI).setLevel(logging.ERROR)
    logging.getLogger(NZBCHECK_ENGINE).setLevel(logging.ERROR)

    if verbose < 0:
        # Quiet mode; only the fatal stuff gets through
        logging.getLogger(NZBCHECK_LOGGER).setLevel(logging.CRITICAL)
        logging.getLogger(NZBCHECK_CLI).setLevel(logging.CRITICAL)
        logging.getLogger(NZBCHECK_ENGINE).setLevel(logging.CRITICAL)

    # Handle Verbosity
    if verbose > 0:
        logging.getLogger(NZBCHECK_CLI).setLevel(logging.INFO)
        logging.getLogger(NZBCHECK_ENGINE).setLevel(logging.INFO)

    if verbose > 1:
        logging.getLogger(NZBCHECK_CLI).setLevel(logging.DEBUG)
        logging.getLogger(NZBCHECK_ENGINE).setLevel(logging.DEBUG)

# set initial level to ERROR.
rootlogger = logging.getLogger(NZBCHECK_LOGGER)
if rootlogger.level == logging.NOTSET:
    set_verbosity(0)
