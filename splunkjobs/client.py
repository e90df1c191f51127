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

#
# The purpose of this module is to provide a friendlier domain interface to
# the search job endpoints. The approach here is to leverage the binding
# layer to capture endpoint context and provide objects and methods that
# offer simplified access to their corresponding endpoints. The design avoids
# caching resource state: every JobStatus is read fresh from the server.
#

"""Client layer: search jobs, their status and the job collection."""

from collections import namedtuple
from urllib.parse import unquote
from xml.etree.ElementTree import ParseError

from splunkjobs.binding import Context, SplunkError, PATH_JOBS, PATH_JOB, \
    sidpath, error_for
import splunkjobs.data as data
from splunkjobs.data import field

__all__ = [
    "connect",
    "JobStatus",
    "PartialPageError",
    "ServerFailureError",
    "Service",
]

# Seconds allowed for each results page request
PAGE_TIMEOUT = 120

def check_status(response, *args):
    """Checks that the given HTTP response is one of the expected values."""
    if response.status not in args:
        raise error_for(response)

# kwargs: scheme, host, port, timeout, verify, ca_file, key_file, cert_file
def connect(credentials, **kwargs):
    """Establishes an authenticated connection to the specified service."""
    return Service(credentials, **kwargs).login()

# Response utilities
def load(response, path):
    """Loads an XML response body, failing with a SplunkError naming the
       endpoint when the body is not XML."""
    try:
        return data.load(response.body.read())
    except (ParseError, ValueError) as e:
        raise SplunkError("Unreadable response from %s: %s" % (path, e)) from e

def _bool(value):
    return value is not None and value.strip().lower() in ("1", "true", "t")

def _int(value):
    if value is None: return 0
    try:
        return int(value)
    except ValueError:
        return int(float(value))

def _float(value, default=None):
    if value is None: return default
    return float(value)

def _author(entry):
    author = entry.get('author', None)
    if isinstance(author, dict):
        return author.get('name', None)
    return author

def _messages(value):
    """Flattens the job's <messages> dict into 'type: text' strings."""
    if not isinstance(value, dict): return []
    result = []
    for kind, texts in value.items():
        if not isinstance(texts, list): texts = [texts]
        result.extend(["%s: %s" % (kind, text) for text in texts if text])
    return result

# A single job GET answers with a bare <entry>, the collection with a <feed>
def _entries(loaded):
    if not isinstance(loaded, dict): return []
    if 'entry' in loaded: return data.entries(loaded)
    if 'content' in loaded: return [loaded]
    return []

def search_id(entry):
    """The trailing path segment of the entry's opaque <id>."""
    value = entry.get('id', None) if isinstance(entry, dict) else None
    if not value: return None
    return unquote(value.rstrip('/').rsplit('/', 1)[-1])

_FIELDS = [
    'sid',
    'label',
    'author',
    'done_progress',
    'is_done',
    'is_failed',
    'event_count',
    'result_count',
    'run_duration',
    'dispatch_state',
    'published',
    'search_id',
    'messages',
]

class JobStatus(namedtuple("JobStatus", _FIELDS)):
    """Snapshot of a search job's server-side state at one poll."""
    __slots__ = ()

    @classmethod
    def from_entry(cls, entry):
        """Build a status from a loaded job <entry>. Absent fields are
           kept as None (done_progress) or their zero value."""
        sid = search_id(entry)
        return cls(
            sid=field(entry, 'sid') or sid,
            label=field(entry, 'label') or entry.get('title', None),
            author=_author(entry),
            done_progress=_float(field(entry, 'doneProgress')),
            is_done=_bool(field(entry, 'isDone')),
            is_failed=_bool(field(entry, 'isFailed')),
            event_count=_int(field(entry, 'eventCount')),
            result_count=_int(field(entry, 'resultCount')),
            run_duration=_float(field(entry, 'runDuration'), 0.0),
            dispatch_state=field(entry, 'dispatchState'),
            published=entry.get('published', None),
            search_id=sid,
            messages=_messages(field(entry, 'messages')))

    @property
    def percent(self):
        """Completion percentage, 0 while the server hasn't estimated it."""
        if self.done_progress is None:
            return 0.0
        return self.done_progress * 100

class Service(Context):
    """Service class."""
    def __init__(self, credentials=None, **kwargs):
        Context.__init__(self, credentials, **kwargs)

    @property
    def jobs(self):
        """Return the search job collection."""
        return Jobs(self)

class Endpoint:
    """Base endpoint class."""
    def __init__(self, service, path):
        self.service = service
        self.path = path

    def _relpath(self, relpath):
        return "%s/%s" % (self.path, relpath) if relpath else self.path

    def get(self, relpath="", timeout=None, **kwargs):
        """Perform get on a basic endpoint."""
        response = self.service.get(
            self._relpath(relpath), timeout=timeout, **kwargs)
        check_status(response, 200, 204)
        return response

    def post(self, relpath="", **kwargs):
        """Perform post to a basic endpoint."""
        response = self.service.post(self._relpath(relpath), **kwargs)
        check_status(response, 200, 201)
        return response

class Job(Endpoint):
    """A submitted search job, addressed by its search id (sid)."""
    def __init__(self, service, sid):
        Endpoint.__init__(self, service, sidpath(PATH_JOB, sid))
        self.sid = sid

    def __repr__(self):
        return "Job(%r)" % self.sid

    def results(self, offset=0, count=0, output_mode="json",
                timeout=PAGE_TIMEOUT):
        """Get one page of job results. A count of 0 asks the server for
           its default page size."""
        return self.get("results", timeout=timeout,
            output_mode=output_mode, count=count, offset=offset).body

    def status(self):
        """Read the job's current state."""
        entries = _entries(load(self.get(), self.path))
        if not entries:
            raise SplunkError("No status returned for search job %s" % self.sid)
        return JobStatus.from_entry(entries[0])

class Jobs(Endpoint):
    """The search job collection."""
    def __init__(self, service):
        Endpoint.__init__(self, service, PATH_JOBS)

    def __getitem__(self, sid):
        return Job(self.service, sid)

    def create(self, query, **kwargs):
        """Submit a search and return its Job."""
        response = self.post(search=query, **kwargs)
        sid = (load(response, self.path) or {}).get('sid', None)
        if not sid:
            raise SplunkError("Job submission returned no search id")
        return Job(self.service, sid)

    def list(self, author=None, sid=None):
        """Returns the status of every job, or of the job with the given sid,
           newest first, optionally limited to jobs owned by author."""
        if sid is not None:
            job = self[sid]
            entries = _entries(load(job.get(), job.path))
        else:
            feed = load(self.get(count=0, sort_key="published", sort_dir="desc"),
                self.path)
            entries = data.entries(feed)
        jobs = [JobStatus.from_entry(entry) for entry in entries]
        if author is not None:
            jobs = [job for job in jobs if job.author == author]
        return jobs

class ServerFailureError(SplunkError):
    """The server reports that the search job failed."""
    def __init__(self, status):
        message = "Search job %s failed on the server" % status.sid
        if status.messages:
            message = "%s: %s" % (message, "; ".join(status.messages))
        SplunkError.__init__(self, message)
        self.status = status

class PartialPageError(SplunkError):
    """A results page could not be fetched part way through pagination."""
    def __init__(self, sid, offset, retrieved, cause):
        SplunkError.__init__(self,
            "Fetching results of %s failed at offset %d after %d rows: %s"
            % (sid, offset, retrieved, cause))
        self.sid = sid
        self.offset = offset
        self.retrieved = retrieved
        self.cause = cause
