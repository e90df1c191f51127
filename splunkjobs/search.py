# Copyright 2011 Splunk, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License"): you may
# not use this file except in compliance with the License. You may obtain
# a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
# WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
# License for the specific language governing permissions and limitations
# under the License.

"""Submits a search, polls the job until the server is done with it and
   collects its results."""

import logging
import time

from splunkjobs.client import ServerFailureError
import splunkjobs.results as results

__all__ = [
    "normalize",
    "SearchQuery",
    "submit",
    "submit_and_wait",
    "wait",
]

logger = logging.getLogger(__name__)

KEYWORD = "search"

# Seconds between two status polls
POLL_INTERVAL = 0.25

def normalize(query):
    """Prefix the query with the 'search' command unless it already starts
       with it."""
    text = query.strip()
    words = text.split(None, 1)
    if len(words) > 0 and words[0].lower() == KEYWORD:
        return text
    return ("%s %s" % (KEYWORD, text)).rstrip()

def format_time(value):
    """ISO-8601 local time with seconds precision. Strings, eg: relative time
       modifiers such as '-24h@h', are passed through unchanged."""
    if value is None or isinstance(value, str):
        return value
    if value.tzinfo is not None:
        value = value.astimezone()
    return value.strftime("%Y-%m-%dT%H:%M:%S")

class SearchQuery:
    """A normalized query and the time window it searches."""
    def __init__(self, text, earliest=None, latest=None):
        self._text = normalize(text)
        self._earliest = earliest
        self._latest = latest

    def __repr__(self):
        return "SearchQuery(%r, %r, %r)" % (
            self._text, self.earliest_time, self.latest_time)

    @property
    def text(self):
        return self._text

    @property
    def earliest(self):
        return self._earliest

    @property
    def latest(self):
        return self._latest

    @property
    def earliest_time(self):
        return format_time(self._earliest)

    @property
    def latest_time(self):
        return format_time(self._latest)

    def params(self):
        """The form fields of the submission request."""
        kwargs = {'search': self._text}
        if self._earliest is not None:
            kwargs['earliest_time'] = self.earliest_time
        if self._latest is not None:
            kwargs['latest_time'] = self.latest_time
        return kwargs

def submit(service, query):
    """Submit the query, a SearchQuery or plain text, and return its Job."""
    if not isinstance(query, SearchQuery):
        query = SearchQuery(query)
    params = query.params()
    job = service.jobs.create(params.pop('search'), **params)
    logger.info("Submitted search job %s (%s to %s)", job.sid,
        query.earliest_time or "default", query.latest_time or "default")
    return job

def report(progress, status):
    """Send one progress event for the given status to the progress sink."""
    activity = "Search job %s" % status.sid
    message = "%s, %.2fs elapsed, %d events" % (
        status.dispatch_state or "UNKNOWN", status.run_duration,
        status.event_count)
    progress(activity, message, status.percent)

def polling(status):
    """True while the job must be polled again. Only isDone ends polling: a
       job that reports isFailed first keeps being polled until it is also
       done."""
    return not status.is_done

def wait(job, progress=None, interval=POLL_INTERVAL, sleep=time.sleep):
    """Poll the job until the server reports it done, returning the last
       status read. Poll errors propagate, nothing is retried."""
    while True:
        status = job.status()
        if progress is not None:
            report(progress, status)
        if not polling(status):
            return status
        sleep(interval)

def submit_and_wait(service, query, progress=None, output_mode="json",
                    destination=None, interval=POLL_INTERVAL,
                    sleep=time.sleep):
    """Run a search to completion.

    Returns the job's ResultSet, or a ServerFailureError when the server
    reports the search failed, in which case no results are fetched."""
    job = submit(service, query)
    status = wait(job, progress, interval, sleep)
    if status.is_failed:
        failure = ServerFailureError(status)
        logger.warning("The server rejected search job %s: %s",
            job.sid, failure)
        return failure
    return results.fetch_all(service, job.sid, output_mode, destination)
