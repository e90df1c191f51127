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

"""A scripted stand-in for splunkjobs.binding.Http and canned splunkd
   payloads for the tests."""

import json
from io import BytesIO
from urllib.parse import parse_qsl, urlsplit

from splunkjobs.binding import Credentials, HttpBase
from splunkjobs.client import Service
from splunkjobs.util import record

ATOM = "http://www.w3.org/2005/Atom"
REST = "http://dev.splunk.com/ns/rest"

JOBS = "/services/search/jobs"

REASONS = {
    200: "OK",
    201: "Created",
    204: "No Content",
    401: "Unauthorized",
    404: "Not Found",
    500: "Internal Server Error",
}

class FakeHttp(HttpBase):
    """Answers each (method, path) from a queue of canned responses. The
       last response of a queue keeps being served once the others are used
       up. A response is a (status, body) pair, an exception to raise, or a
       callable taking the request record."""

    def __init__(self):
        HttpBase.__init__(self)
        self.routes = {}
        self.requests = []

    def route(self, method, path, *responses):
        self.routes[(method, path)] = list(responses)
        return self

    def calls(self, method, path):
        return [r for r in self.requests
                if r.method == method and r.path == path]

    def request(self, url, message, timeout=None):
        parts = urlsplit(url)
        request = record({
            'method': message.get("method", "GET"),
            'url': url,
            'path': parts.path,
            'query': dict(parse_qsl(parts.query)),
            'body': dict(parse_qsl(message.get("body", ""))),
            'headers': dict(message.get("headers", [])),
            'timeout': timeout,
        })
        self.requests.append(request)

        queue = self.routes.get((request.method, request.path), None)
        if not queue:
            return self._build_response(404, "Not Found", [], BytesIO(b""))
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(response):
            response = response(request)
        if isinstance(response, Exception):
            raise response
        status, body = response
        if isinstance(body, str):
            body = body.encode("utf-8")
        return self._build_response(
            status, REASONS.get(status, "Unknown"), [], BytesIO(body))

def service(http=None):
    """A Service bound to localhost through a FakeHttp."""
    http = FakeHttp() if http is None else http
    return Service(Credentials("admin", "changeme"), http=http, host="localhost")

def entry(sid, done=False, failed=False, progress=None, results=0, events=0,
          author="admin", label=None, state=None, published=None,
          duration="0.25", messages=None, root=True):
    """The Atom <entry> splunkd returns for one search job."""
    keys = {
        'sid': sid,
        'isDone': "1" if done else "0",
        'isFailed': "1" if failed else "0",
        'eventCount': str(events),
        'resultCount': str(results),
        'runDuration': duration,
        'dispatchState': state or ("DONE" if done else "RUNNING"),
    }
    if progress is not None:
        keys['doneProgress'] = progress
    if label is not None:
        keys['label'] = label
    content = "".join(['<s:key name="%s">%s</s:key>' % item
                       for item in keys.items()])
    if messages:
        content += '<s:key name="messages"><s:dict>%s</s:dict></s:key>' % "".join(
            ['<s:key name="%s">%s</s:key>' % item for item in messages.items()])
    xmlns = ' xmlns="%s" xmlns:s="%s"' % (ATOM, REST) if root else ""
    return (
        '<entry%s>'
        '<title>search index=x</title>'
        '<id>https://localhost:8089/services/search/jobs/%s</id>'
        '<link href="/services/search/jobs/%s" rel="alternate"/>'
        '<published>%s</published>'
        '<author><name>%s</name></author>'
        '<content type="text/xml"><s:dict>%s</s:dict></content>'
        '</entry>' % (xmlns, sid, sid,
            published or "2011-07-07T20:49:58.000-07:00", author, content))

def feed(*entries):
    """An Atom <feed> of job entries, built with entry(..., root=False)."""
    return (
        '<feed xmlns="%s" xmlns:s="%s">'
        '<title>jobs</title>'
        '<id>https://localhost:8089/services/search/jobs</id>'
        '%s</feed>' % (ATOM, REST, "".join(entries)))

def created(sid):
    """The body of a job submission response."""
    return "<response><sid>%s</sid></response>" % sid

def json_page(rows):
    return json.dumps({'preview': False, 'init_offset': 0, 'messages': [],
                       'results': rows})
