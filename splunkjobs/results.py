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

"""Readers for pages of search results and the offset based paginator that
   collects every page of a finished job."""

import csv
import json
import logging
from io import BytesIO, StringIO
from xml.etree.ElementTree import ParseError, iterparse

from splunkjobs.binding import NotFoundError, SplunkError
from splunkjobs.client import PAGE_TIMEOUT, PartialPageError
import splunkjobs.output as output

__all__ = [
    "fetch_all",
    "read_page",
    "ResultPage",
    "ResultSet",
    "ResultsReader",
]

logger = logging.getLogger(__name__)

# Rows requested per results call
PAGE_SIZE = 50000

MESSAGE = "MESSAGE"
RESULT = "RESULT"
RESULTS = "RESULTS"

def _bytes(input):
    if input is None: return b""
    if hasattr(input, "read"): input = input.read()
    if isinstance(input, str): input = input.encode("utf-8")
    return input

def _text(input):
    return _bytes(input).decode("utf-8")

def _read_field(element):
    values = ["".join(text.itertext()) for text in element.findall("value/text")]
    raw = element.find("v")
    if raw is not None:
        values.append("".join(raw.itertext()))
    if len(values) == 0: return None
    return values[0] if len(values) == 1 else values

class ResultsReader:
    """A forward-only reader over one page of XML search results. Iterating
       yields (kind, value) pairs where kind is one of RESULTS (the section
       attributes), MESSAGE ({'type', 'message'}) or RESULT (a row dict)."""
    # input : bytes | str | file
    def __init__(self, input):
        self._items = self._scan(_bytes(input))

    def __iter__(self):
        return self

    def __next__(self):
        return next(self._items)

    def _scan(self, body):
        # An empty page has no document at all
        if len(body.strip()) == 0: return
        for event, element in iterparse(BytesIO(body), events=("start", "end")):
            if event == "start":
                if element.tag == "results":
                    yield (RESULTS, dict(element.attrib))
                continue
            if element.tag == "result":
                row = {}
                for item in element.findall("field"):
                    row[item.get("k")] = _read_field(item)
                yield (RESULT, row)
                element.clear()
            elif element.tag == "msg":
                yield (MESSAGE, {
                    'type': element.get("type"),
                    'message': "".join(element.itertext()).strip(),
                })

def read_json(body):
    text = _text(body)
    if len(text.strip()) == 0: return []
    value = json.loads(text)
    # Older servers answer with a bare array of rows
    if isinstance(value, list): return value
    if not isinstance(value, dict):
        raise ValueError("Unexpected json results: %s" % type(value).__name__)
    return value.get("results", [])

def read_csv(body):
    return [dict(row) for row in csv.DictReader(StringIO(_text(body)))]

def read_xml(body):
    return [value for kind, value in ResultsReader(body) if kind == RESULT]

_readers = {
    'json': read_json,
    'csv': read_csv,
    'xml': read_xml,
}

def read_page(body, output_mode):
    """Parse a results body in the given output mode into a list of rows."""
    reader = _readers.get(output_mode, None)
    if reader is None:
        raise ValueError("Unknown output mode '%s'" % output_mode)
    return reader(body)

class ResultPage:
    """The rows of one results call and the offset they were fetched at."""
    def __init__(self, offset, rows):
        self.offset = offset
        self.rows = rows

    def __iter__(self):
        return iter(self.rows)

    def __len__(self):
        return len(self.rows)

class ResultSet:
    """Every row retrieved for one job, in server order."""
    def __init__(self, sid, expected):
        self.sid = sid
        self.expected = expected
        self.offsets = []
        self.rows = []

    def __getitem__(self, index):
        return self.rows[index]

    def __iter__(self):
        return iter(self.rows)

    def __len__(self):
        return len(self.rows)

    def __repr__(self):
        return "ResultSet(%r, %d of %d rows)" % (
            self.sid, len(self.rows), self.expected)

    @property
    def complete(self):
        return len(self.rows) == self.expected

    def extend(self, page):
        self.offsets.append(page.offset)
        self.rows.extend(page.rows)
        return self

def fetch_all(service, sid, output_mode="json", destination=None,
              page_size=PAGE_SIZE, timeout=PAGE_TIMEOUT):
    """Fetch every result of a finished job, page by page.

    The job's resultCount is read once, up front, and pages are requested at
    offsets 0, page_size, 2*page_size, ... until the offset reaches it. A page
    that can't be fetched or parsed raises PartialPageError and the rows read
    so far are dropped. When a destination is given the complete set is also
    written there in output_mode format."""
    if output_mode not in _readers:
        raise ValueError("Unknown output mode '%s'" % output_mode)

    jobs = service.jobs.list(sid=sid)
    if len(jobs) == 0:
        raise NotFoundError(None, "Search job '%s' does not exist" % sid)
    total = jobs[0].result_count

    job = service.jobs[sid]
    resultset = ResultSet(sid, total)
    offset = 0
    while offset < total:
        try:
            body = job.results(offset=offset, count=0,
                output_mode=output_mode, timeout=timeout)
            page = ResultPage(offset, read_page(body, output_mode))
        except (SplunkError, ParseError, ValueError, csv.Error) as e:
            raise PartialPageError(sid, offset, len(resultset), e) from e
        resultset.extend(page)
        logger.debug("Read %d rows of %s at offset %d",
            len(page), sid, offset)
        offset += page_size

    if not resultset.complete:
        logger.info("Search job %s returned %d rows, expected %d",
            sid, len(resultset), total)

    if destination is not None:
        output.write(destination, output_mode, resultset)
    return resultset
