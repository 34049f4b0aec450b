# -*- coding: utf-8 -*-
#
# The shared backlog of articles (Message-ID's) waiting to be checked
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

import re

from collections import deque
from gevent.lock import Semaphore

# Logging
import logging
from nzbcheck.Logging import NZBCHECK_ENGINE
logger = logging.getLogger(NZBCHECK_ENGINE)

# An article id is sent to the server as is (STAT <id>); it can never
# contain whitespace or control characters
INVALID_ARTICLE_ID_RE = re.compile(r"[\s\x00-\x1f\x7f]")


class BacklogAbortedException(Exception):
    """
    Thrown by pull_next() once the backlog has been aborted; whoever is
    pulling from it is expected to stop what they're doing.
    """
    pass


class NNTPArticleBacklog(object):
    """
    The backlog is shared by every NNTPConnection() we spin; each one pulls
    the next article to check from here and reports back what it found.

    All access is wrapped with a mutex so that no article is ever handed
    out more than once, no matter how many connections are pulling from it
    at the same time.

    """

    def __init__(self, articles=None):
        """
        Initialize our object
        """
        super(NNTPArticleBacklog, self).__init__()

        self.lock = Semaphore(value=1)

        # The articles still waiting to be handed out
        self._queue = deque()

        # Every article we were ever given (used to eliminate duplicates)
        self._seen = set()

        # The articles reported missing (in the order they were reported)
        self._missing = []
        self._missing_set = set()

        # Our counters
        self._total = 0
        self._checked = 0

        # Set when we're told to abort
        self._aborted = False

        if articles:
            self.extend(articles)

    def add(self, article_id):
        """
        Adds an article to the backlog; duplicates, empty entries and ids
        containing whitespace (or control characters) are ignored.

        Returns True if the article was added and False if it wasn't.
        """
        if not isinstance(article_id, str) or not article_id:
            return False

        if INVALID_ARTICLE_ID_RE.search(article_id):
            logger.warning(
                "Ignoring invalid article id %r" % (article_id, ))
            return False

        try:
            self.lock.acquire(blocking=True)
            if article_id in self._seen:
                return False

            self._seen.add(article_id)
            self._queue.append(article_id)
            self._total += 1
            return True

        finally:
            self.lock.release()

    def extend(self, articles):
        """
        Adds all of the articles specified, returning how many of them were
        actually added.
        """
        return len([a for a in articles if self.add(a)])

    def pull_next(self):
        """
        Returns the next article to check or None if there aren't any left.

        This never blocks; a BacklogAbortedException() is thrown if we were
        aborted.
        """
        try:
            self.lock.acquire(blocking=True)
            if self._aborted:
                raise BacklogAbortedException('The backlog was aborted.')

            if not self._queue:
                return None

            return self._queue.popleft()

        finally:
            self.lock.release()

    def report_checked(self):
        """
        Called once for every article pulled that has been checked
        """
        try:
            self.lock.acquire(blocking=True)
            self._checked += 1

        finally:
            self.lock.release()

    def report_missing(self, article_id):
        """
        Called for every article the server told us it doesn't have
        """
        try:
            self.lock.acquire(blocking=True)
            if article_id not in self._missing_set:
                self._missing_set.add(article_id)
                self._missing.append(article_id)

        finally:
            self.lock.release()

        logger.debug('Article %s is missing.' % article_id)

    def abort(self):
        """
        Prevents anything further from being pulled from the backlog.
        """
        try:
            self.lock.acquire(blocking=True)
            if not self._aborted:
                logger.debug(
                    'Aborting backlog with %d article(s) pending.' %
                    len(self._queue))
            self._aborted = True

        finally:
            self.lock.release()

    @property
    def aborted(self):
        return self._aborted

    @property
    def total(self):
        return self._total

    @property
    def checked(self):
        return self._checked

    @property
    def pending(self):
        return len(self._queue)

    @property
    def missing(self):
        """
        Returns a copy of the list of missing articles
        """
        try:
            self.lock.acquire(blocking=True)
            return list(self._missing)

        finally:
            self.lock.release()

    def is_complete(self):
        """
        Returns True if every article in the backlog has been checked
        """
        return self._checked >= self._total

    def __len__(self):
        """
        Returns the total number of unique articles we were given
        """
        return self._total

    def __repr__(self):
        """
        Return a printable object
        """
        return '<NNTPArticleBacklog checked=%d/%d missing=%d />' % (
            self._checked,
            self._total,
            len(self._missing),
        )
