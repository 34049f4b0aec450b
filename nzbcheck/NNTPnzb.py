# -*- coding: utf-8 -*-
#
# A NZB-File reader used to acquire the articles we want to check
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

from os.path import basename
from os.path import expanduser

from nzbcheck.Utils import normalize_message_id

# Logging
import logging
from nzbcheck.Logging import NZBCHECK_LOGGER
logger = logging.getLogger(NZBCHECK_LOGGER)

# XML Parsing
from lxml import etree
from lxml.etree import XMLSyntaxError

NZB_XML_NAMESPACE = 'http://www.newzbin.com/DTD/2003/nzb'


def _tags(name):
    """
    Returns the tag names we match an element against; NZB-Files without a
    namespace are handled too.
    """
    return ('{%s}%s' % (NZB_XML_NAMESPACE, name), name)


class NNTPnzb(object):
    """
    This class reads the Message-ID's out of an NZB-File.

    The file is streamed (one <file/> entry at a time) so even very large
    NZB-Files don't cost us much memory.  Every <segment/> found becomes a
    Message-ID (enclosed in angle brackets); duplicates are only returned
    once.

    """

    def __init__(self, nzbfile=None, *args, **kwargs):
        """
        Initialize NNTP NZB object
        """

        # The nzbfile
        self.filepath = expanduser(nzbfile) if nzbfile else None

        # The groups the articles were posted to
        self.groups = []

        # The number of <file/> entries read
        self.file_count = 0

        # Our Message-ID's; only populated on demand
        self._lazy_segments = None
        self._lazy_is_valid = None

    def _parse(self):
        """
        Reads our NZB-File; the results are cached
        """
        if self._lazy_segments is not None:
            return

        segments = []
        seen = set()
        groups = []

        self._lazy_is_valid = False
        self.file_count = 0

        if not self.filepath:
            logger.warning('No NZB-File was specified.')
            self._lazy_segments = segments
            return

        try:
            for _, entry in etree.iterparse(
                    self.filepath, events=('end', ), tag=_tags('file')):

                self.file_count += 1

                for group in entry.iter(*_tags('group')):
                    name = (group.text or '').strip()
                    if name and name not in groups:
                        groups.append(name)

                for segment in entry.iter(*_tags('segment')):
                    article_id = normalize_message_id(segment.text)
                    if article_id is None:
                        logger.warning(
                            "NZB-File '%s' contains an invalid segment: %s" % (
                                self.filepath, segment.text))
                        continue

                    if article_id in seen:
                        continue

                    seen.add(article_id)
                    segments.append(article_id)

                # clear our unused memory
                entry.clear()

            self._lazy_is_valid = True

        except (IOError, OSError) as e:
            logger.warning('NZB-File is missing: %s' % self.filepath)
            logger.debug('NZB-File Exception %s' % str(e))

        except XMLSyntaxError as e:
            # We have corruption
            logger.error("NZB-File '%s' is corrupt" % self.filepath)
            logger.debug('NZB-File XMLSyntaxError Exception %s' % str(e))

        self.groups = groups
        self._lazy_segments = segments

        logger.info("NZB-File '%s' contains %d article(s)." % (
            self.filepath, len(segments)))

    def is_valid(self):
        """
        Returns True if the NZB-File could be read in its entirety
        """
        self._parse()
        return self._lazy_is_valid is True

    def segments(self):
        """
        A generator that returns each Message-ID found in the NZB-File
        """
        self._parse()
        for article_id in self._lazy_segments:
            yield article_id

    def __iter__(self):
        """
        Mimic iter()
        """
        return self.segments()

    def __len__(self):
        """
        Returns the number of segments (articles) in the NZB File
        """
        self._parse()
        return len(self._lazy_segments)

    def __repr__(self):
        """
        Return a printable version of the file being read
        """
        return '<NNTPnzb filename="%s" />' % (
            basename(self.filepath) if self.filepath else '',
        )
