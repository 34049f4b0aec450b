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

# Checks that the articles referenced by one or more NZB-Files still exist
# on your NNTP Server(s):
#
#   # Use the servers defined in your config.yaml file
#   nzbcheck.py /path/to/file.nzb
#
#   # Or identify the server on the command line
#   nzbcheck.py --host=news.example.com --ssl --user=bob --password=secret \
#               -n 10 /path/to/file.nzb
#
# The command line returns:
#   0 if every article was found
#   1 if one or more articles are missing
#   2 if not every article could be checked (or the input was bad)

import click
import sys

from nzbcheck.NNTPSettings import NNTPSettings
from nzbcheck.NNTPServerConfig import NNTPServerConfig
from nzbcheck.NNTPArticleBacklog import NNTPArticleBacklog
from nzbcheck.NNTPManager import NNTPManager
from nzbcheck.NNTPnzb import NNTPnzb

# Logging
from nzbcheck.Logging import NZBCHECK_CLI
from nzbcheck.Logging import NZBCHECK_LOGGER
from nzbcheck.Logging import add_handler
from nzbcheck.Logging import set_verbosity
import logging
logger = logging.getLogger(NZBCHECK_CLI)

# Our return codes
EXIT_OK = 0
EXIT_MISSING = 1
EXIT_INCOMPLETE = 2


def load_servers(settings, host=None, port=None, secure=False,
                 verify_cert=False, user=None, password=None,
                 connections=None):
    """
    Returns the list of NNTPServerConfig() objects to check against; a host
    specified on the command line takes priority over the servers in our
    configuration file.

    A ValueError is thrown if the server details are no good.
    """
    if host:
        return [NNTPServerConfig(
            host=host,
            port=port,
            secure=secure,
            verify_cert=verify_cert,
            username=user,
            password=password,
            connections=connections if connections is not None else 1,
        )]

    servers = settings.servers()
    if connections is not None:
        # Over-ride the number of connections configured
        servers = [
            NNTPServerConfig.from_dict(
                dict(s.as_dict(), connections=connections))
            for s in servers]

    return servers


@click.command()
@click.option('--config', '-c', type=click.Path(),
              help='The configuration file to load.')
@click.option('--host', help='The NNTP Server to check against.')
@click.option('--port', type=int,
              help='The NNTP Server port (119 or 563 if --ssl is set).')
@click.option('--ssl', 'secure', is_flag=True,
              help='Secure the connection with SSL/TLS.')
@click.option('--verify-cert', is_flag=True,
              help='Verify the certificate presented by the server.')
@click.option('--user', '-u', help='The username to authenticate with.')
@click.option('--password', '-p', help='The password to authenticate with.')
@click.option('--connections', '-n', type=int,
              help='The number of connections to open per server.')
@click.option('--timeout', type=float,
              help='Seconds to wait for a connection to be established.')
@click.option('--inactivity-timeout', type=float,
              help='Seconds a connection may sit idle before it is dropped.')
@click.option('--list-missing', is_flag=True,
              help='List the Message-ID of each missing article.')
@click.option('--verbose', '-v', count=True,
              help='Verbose mode.')
@click.option('--quiet', '-q', is_flag=True,
              help='Only report fatal errors.')
@click.argument('nzbfiles', nargs=-1, required=True, type=click.Path())
def main(config, host, port, secure, verify_cert, user, password,
         connections, timeout, inactivity_timeout, list_missing, verbose,
         quiet, nzbfiles):
    """
    Checks whether the articles referenced in NZB-Files exist on your NNTP
    Server(s).
    """

    # Add our handler at the parent level (once)
    _logger = logging.getLogger(NZBCHECK_LOGGER)
    if not _logger.handlers:
        add_handler(_logger, sendto=False)

    # Handle Verbosity
    set_verbosity(-1 if quiet else verbose)

    # NNTPSettings() for retrieving our configuration
    settings = NNTPSettings(cfg_file=config)

    if config and settings.cfg_file is None:
        logger.error("The configuration file %s could not be loaded." % (
            config))
        sys.exit(EXIT_INCOMPLETE)

    if not host and not settings.is_valid():
        # our configuration was invalid
        logger.error("No valid config.yaml file was found.")
        sys.exit(EXIT_INCOMPLETE)

    try:
        servers = load_servers(
            settings, host=host, port=port, secure=secure,
            verify_cert=verify_cert, user=user, password=password,
            connections=connections)

    except ValueError as e:
        logger.error(str(e))
        sys.exit(EXIT_INCOMPLETE)

    # Build our backlog
    backlog = NNTPArticleBacklog()
    for path in nzbfiles:
        nzb = NNTPnzb(path)
        if not nzb.is_valid():
            logger.error("Could not read NZB-File %s" % path)
            sys.exit(EXIT_INCOMPLETE)

        added = backlog.extend(nzb)
        logger.info("Loaded %d article(s) from %s" % (added, path))

    if not len(backlog):
        logger.warning("There were no articles to check.")

    else:
        try:
            # NNTPManager() for interacting with all of our NNTP Servers
            manager = NNTPManager(
                servers=servers,
                backlog=backlog,
                timeout=timeout if timeout else
                settings.nntp_processing.get('timeout'),
                inactivity_timeout=inactivity_timeout
                if inactivity_timeout is not None else
                settings.nntp_processing.get('inactivity_timeout'),
            )

        except AttributeError as e:
            logger.error(str(e))
            sys.exit(EXIT_INCOMPLETE)

        try:
            manager.run()

        except KeyboardInterrupt:
            logger.warning("Aborting; closing connections...")
            manager.close()

    missing = backlog.missing

    click.echo('Checked %d/%d article(s), %d missing' % (
        backlog.checked, backlog.total, len(missing)))

    if list_missing:
        for article_id in missing:
            click.echo(article_id)

    if not backlog.is_complete():
        sys.exit(EXIT_INCOMPLETE)

    sys.exit(EXIT_MISSING if missing else EXIT_OK)
