# -*- coding: utf-8 -*-
#
# Centralized Settings and Configuration
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
#
# Settings are only valid if at least one enabled server configuration
# was found.
#
# A Sample configuration (config.yaml) might look like this:
#   servers:
#     - username: lead2gold
#       password: abc123
#       host: awesome.nntp.server.com
#       port: 563
#       secure: True
#       verify_cert: False
#       connections: 10
#       enabled: True
#
#   # have you got another server you want to check against too?
#   # you can add as many more as you want here, just follow
#   # the proper yaml formating and indentation.
#
#     - host: awesome.backup.nntp.server.com
#       connections: 2
#       enabled: False
#
#   processing:
#     timeout: 30
#     inactivity_timeout: 120

import yaml

from os import name as os_name
from os.path import join
from os.path import isfile
from os.path import abspath
from os.path import expanduser
from copy import deepcopy

from nzbcheck.NNTPServerConfig import NNTPServerConfig
from nzbcheck.NNTPServerConfig import SERVER_CONFIG_KEYWORDS
from nzbcheck.SocketBase import DEFAULT_CONNECT_TIMEOUT
from nzbcheck.Utils import parse_seconds

# Logging
import logging
from nzbcheck.Logging import NZBCHECK_ENGINE
logger = logging.getLogger(NZBCHECK_ENGINE)

# Root path
if os_name == 'nt':
    ROOT = 'C:\\'
else:
    ROOT = '/'

# The Configuration Directory
DEFAULT_BASE_DIR = join(expanduser('~'), '.config', 'nzbcheck')

# Possible Configuration Paths
DEFAULT_CONFIG_FILE_PATHS = (
    join(DEFAULT_BASE_DIR, 'config.yaml'),
    join(expanduser('~'), '.nzbcheck', 'config.yaml'),
    join(ROOT, 'etc', 'nzbcheck', 'config.yaml'),
    join(ROOT, 'etc', 'nzbcheck.yaml'),
)

# Server Variables mapped to their defaults if not found.
# if None is specified, then the field is mandatory or we'll abort
DEFAULT_SERVER_VARIABLES = {
    'username': None,
    'password': None,
    'host': None,
    'port': None,
    'secure': False,
    'verify_cert': False,
    'connections': 1,
    'enabled': True,
}

# Keyword used in configuration to host all of the defined NNTP Servers
SERVER_LIST_KEY = 'servers'

# Processing Variables mapped to their defaults if not found.
DEFAULT_PROCESSING_VARIABLES = {
    # The number of seconds to wait for a connection to be established
    'timeout': DEFAULT_CONNECT_TIMEOUT,
    # The number of seconds a connection can sit without hearing anything
    # from its server before we hang up on it; None disables this.
    'inactivity_timeout': None,
}

# Keyword used in configuration to host our processing variables
PROCESSING_KEY = 'processing'

# A Parsed Configuration Shell
VALID_SETTINGS_ENTRY = {
    SERVER_LIST_KEY: [],
    PROCESSING_KEY: DEFAULT_PROCESSING_VARIABLES,
}


class NNTPSettings(object):
    """
    An object that holds the NNTP Servers (and processing options) read
    from our configuration file.
    """

    def __init__(self, cfg_file=None):
        """
        Initializes the configuration based the configuration file specified.
        If no configuration file is specified, then the default paths are
        checked instead.
        """

        # The data read from the configuration file
        self.cfg_data = {}

        # The configuration file we loaded
        self.cfg_file = None

        # A list of the NNTP Server configuration (dictionaries) found in
        # the configuration file
        self.nntp_servers = []

        # Initializing Processing
        self.nntp_processing = DEFAULT_PROCESSING_VARIABLES.copy()

        # Is valid flag
        self._is_valid = False

        # Store first matched configuration file found
        if not cfg_file:
            # Load the first configuration file found in default path list
            cfg_file = next((path for path in DEFAULT_CONFIG_FILE_PATHS
                             if isfile(path)), None)

        if isinstance(cfg_file, str) and isfile(expanduser(cfg_file)):
            # A configuration path was specified
            self.read(cfg_file)

    def is_valid(self):
        """
        Returns True if the information loaded is valid and false if it isn't
        """
        return self._is_valid

    def servers(self):
        """
        Returns a list of NNTPServerConfig() objects for all of the enabled
        servers we loaded.
        """
        results = []
        for entry in self.nntp_servers:
            try:
                results.append(NNTPServerConfig.from_dict(entry))

            except ValueError as e:
                logger.error('Skipping server %s: %s' % (
                    entry.get('host'), str(e)))

        return [s for s in results if s.enabled]

    def _read_yaml(self, cfg_file=None):
        """
        Loads the configuration file passed in.

        The function always returns a configuration dictionary; if the file
        could not be read (or is invalid) it's simply our default one.
        """

        # Default Configuration Starting Point
        _cfg_data = deepcopy(VALID_SETTINGS_ENTRY)

        if cfg_file is None:
            logger.debug('There was no YAML config file specified')
            return _cfg_data

        elif not isfile(cfg_file):
            logger.debug('Failed to locate YAML config file %s' % (cfg_file))
            return _cfg_data

        try:
            with open(cfg_file, 'r') as fp:
                cfg_data = yaml.safe_load(fp)

            logger.debug('Successfully parsed YAML configuration from %s' % (
                cfg_file,
            ))

        except yaml.YAMLError as e:
            logger.debug('%s' % (str(e)))
            logger.error('Failed to parse YAML configuration from %s' % (
                cfg_file,
            ))
            return _cfg_data

        except IOError as e:
            logger.debug('%s' % (str(e)))
            logger.error('Failed to access YAML configuration from %s' % (
                cfg_file,
            ))
            return _cfg_data

        if not isinstance(cfg_data, dict):
            # We failed
            logger.error('Invalid YAML configuration structure in %s' % (
                cfg_file,
            ))
            return _cfg_data

        # If we get here, we read something from the configuration file
        # apply it into our dictionary and return it.
        if SERVER_LIST_KEY not in cfg_data:
            logger.error('No [%s] entries defined in YAML configuration %s' % (
                SERVER_LIST_KEY,
                cfg_file,
            ))

        elif not isinstance(cfg_data[SERVER_LIST_KEY], (list, tuple)):
            if not isinstance(cfg_data[SERVER_LIST_KEY], dict):
                logger.error(
                    'Failed to interpret YAML server configuration from %s' % (
                        cfg_file,
                    )
                )
                del cfg_data[SERVER_LIST_KEY]

            else:
                # Treat as single server and convert to list attempting to be
                # user-friendly:
                cfg_data[SERVER_LIST_KEY] = (
                    cfg_data[SERVER_LIST_KEY],
                )

        if isinstance(cfg_data.get(PROCESSING_KEY), dict):
            _cfg_data[PROCESSING_KEY].update(cfg_data[PROCESSING_KEY])

        for server in cfg_data.get(SERVER_LIST_KEY) or []:
            if not isinstance(server, dict):
                logger.warning(
                    'Ignoring unparseable server entry in %s' % cfg_file)
                continue

            defaults = DEFAULT_SERVER_VARIABLES.copy()
            defaults.update(server)
            _cfg_data[SERVER_LIST_KEY].append(defaults)

        return _cfg_data

    def read(self, cfg_file=None):
        """
        Load our configuration from the file specified.

        Returns True if at least one enabled server was loaded.
        """

        # reset config data read
        self.cfg_data = {}

        # empty server listing
        self.nntp_servers = []

        # reset processing dictionary
        self.nntp_processing = DEFAULT_PROCESSING_VARIABLES.copy()

        # is_valid flag reset
        self._is_valid = False

        # A Simple list of hostnames (keys) so we can handle duplicates
        _hosts = []

        if cfg_file is None:
            cfg_file = self.cfg_file

        if not isinstance(cfg_file, str) or \
                not isfile(expanduser(cfg_file)):
            logger.warning('No configuration found in: %s' % (
                cfg_file,
            ))
            return False

        # Save configuration file path
        self.cfg_file = abspath(expanduser(cfg_file))

        logger.debug('Loading configuration file %s' % (self.cfg_file))

        # read our data
        self.cfg_data = self._read_yaml(cfg_file=self.cfg_file)

        logger.info('Loaded configuration file %s' % (self.cfg_file))

        # Strip out only the information we're interested in; every one of
        # our processing variables is a number of seconds
        for k in DEFAULT_PROCESSING_VARIABLES.keys():
            if k not in self.cfg_data[PROCESSING_KEY]:
                continue

            try:
                self.nntp_processing[k] = \
                    parse_seconds(self.cfg_data[PROCESSING_KEY][k])

            except ValueError as e:
                logger.error(
                    'An invalid processing entry "%s" was specified: %s' % (
                        k, str(e)))
                self.nntp_processing[k] = DEFAULT_PROCESSING_VARIABLES[k]

            if self.nntp_processing[k] is None:
                self.nntp_processing[k] = DEFAULT_PROCESSING_VARIABLES[k]

        # Load our Server configuration
        for index, s in enumerate(self.cfg_data[SERVER_LIST_KEY], start=1):
            # First we strip out only the inforation we're interested in
            results = dict(
                (k, s[k]) for k in SERVER_CONFIG_KEYWORDS if k in s)

            # Purge any entries from our list that are set to 'None'
            results = dict(
                (k, v) for k, v in results.items() if v is not None)

            # our server key is always the hostname
            try:
                _key = results['host'].strip().lower()
                if not _key:
                    raise ValueError('Empty host')

            except (AttributeError, ValueError, TypeError):
                # Bad entry
                logger.error(
                    'An invalid server "host" entry #%d ' % (
                        index) + '(bad `host=` identifier) ' +
                    'was specified.',
                )
                continue

            except KeyError:
                # Bad entry
                logger.error(
                    'An invalid server entry #%d ' % index +
                    '(missing `host=` keyword) was specified.',
                )
                continue

            if _key in _hosts:
                # Duplicate
                logger.warning(
                    'Duplicate server entry #%d (%s)' % (index, _key) +
                    ' was ignored.',
                )
                continue

            # Update our host using the key for consistency
            results['host'] = _key

            try:
                # Validate our entry now so we don't find out about it later
                NNTPServerConfig.from_dict(results)

            except ValueError as e:
                logger.error(
                    'An invalid server entry #%d (%s) was specified: %s' % (
                        index, _key, str(e)))
                continue

            _hosts.append(_key)
            self.nntp_servers.append(results)

        logger.info("Loaded %d NNTP enabled server(s)" % len(self.servers()))

        # Is valid flag
        self._is_valid = len(self.servers()) > 0

        return self._is_valid
