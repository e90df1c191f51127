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

from datetime import datetime
import unittest

from splunkjobs.binding import HTTPError
from splunkjobs.client import ServerFailureError
from splunkjobs.results import ResultSet
import splunkjobs.search as search
from splunkjobs.search import SearchQuery, normalize

from fakehttp import JOBS, FakeHttp, created, entry, json_page, service

class Sleeper:
    def __init__(self):
        self.calls = []

    def __call__(self, secs):
        self.calls.append(secs)

class Progress:
    def __init__(self):
        self.events = []

    def __call__(self, activity, message, percent):
        self.events.append((activity, message, percent))

class NormalizeTestCase(unittest.TestCase):
    def test_prefix(self):
        self.assertEqual(normalize("index=x | head 5"),
            "search index=x | head 5")
        self.assertEqual(normalize("  error  "), "search error")
        self.assertEqual(normalize(""), "search")

    def test_already_prefixed(self):
        self.assertEqual(normalize("search index=x"), "search index=x")
        self.assertEqual(normalize("SEARCH index=x"), "SEARCH index=x")
        self.assertEqual(normalize("searchindex=x"), "search searchindex=x")

    def test_idempotent(self):
        for query in ["index=x", "search index=x", " | stats count", "foo bar"]:
            once = normalize(query)
            self.assertEqual(normalize(once), once)

class SearchQueryTestCase(unittest.TestCase):
    def test_params(self):
        query = SearchQuery("index=x",
            datetime(2011, 7, 6, 20, 49, 58), datetime(2011, 7, 7, 20, 49, 58))
        self.assertEqual(query.text, "search index=x")
        self.assertEqual(query.params(), {
            'search': "search index=x",
            'earliest_time': "2011-07-06T20:49:58",
            'latest_time': "2011-07-07T20:49:58",
        })

    def test_no_window(self):
        self.assertEqual(SearchQuery("index=x").params(),
            {'search': "search index=x"})

    def test_modifiers(self):
        query = SearchQuery("index=x", "-24h@h", "now")
        self.assertEqual(query.earliest_time, "-24h@h")
        self.assertEqual(query.latest_time, "now")

    def test_readonly(self):
        query = SearchQuery("index=x")
        self.assertRaises(AttributeError, setattr, query, "text", "y")

class LifecycleTestCase(unittest.TestCase):
    def setUp(self):
        self.http = FakeHttp()
        self.service = service(self.http)
        self.sleep = Sleeper()
        self.progress = Progress()
        self.http.route("POST", JOBS, (201, created("J1")))

    def run_search(self, query="index=x"):
        return search.submit_and_wait(self.service, query,
            progress=self.progress, sleep=self.sleep)

    def test_search(self):
        self.http.route("GET", JOBS + "/J1",
            (200, entry("J1", progress="0.25")),
            (200, entry("J1", progress="0.5")),
            (200, entry("J1", done=True, progress="1.0", results=2)))
        self.http.route("GET", JOBS + "/J1/results",
            (200, json_page([{'a': "1"}, {'a': "2"}])))

        result = self.run_search()
        self.assertTrue(isinstance(result, ResultSet))
        self.assertEqual(list(result), [{'a': "1"}, {'a': "2"}])
        self.assertTrue(result.complete)

        self.assertEqual(self.http.requests[0].body, {'search': "search index=x"})
        self.assertEqual(self.sleep.calls, [0.25, 0.25])
        self.assertEqual([percent for _, _, percent in self.progress.events],
            [25.0, 50.0, 100.0])
        activity, message, _ = self.progress.events[-1]
        self.assertEqual(activity, "Search job J1")
        self.assertTrue(message.startswith("DONE"))

        fetches = self.http.calls("GET", JOBS + "/J1/results")
        self.assertEqual(len(fetches), 1)
        self.assertEqual(fetches[0].query['count'], "0")
        self.assertEqual(fetches[0].query['offset'], "0")

    def test_failed(self):
        self.http.route("GET", JOBS + "/J1",
            (200, entry("J1")),
            (200, entry("J1", done=True, failed=True, state="FAILED",
                messages={'fatal': "Unknown search command 'foo'."})))

        with self.assertLogs("splunkjobs.search", "WARNING"):
            result = self.run_search("foo")
        self.assertTrue(isinstance(result, ServerFailureError))
        self.assertTrue(result.status.is_failed)
        self.assertEqual(self.http.calls("GET", JOBS + "/J1/results"), [])

    def test_failed_before_done(self):
        self.http.route("GET", JOBS + "/J1",
            (200, entry("J1", failed=True)),
            (200, entry("J1", failed=True)),
            (200, entry("J1", done=True, failed=True)))

        result = self.run_search()
        self.assertTrue(isinstance(result, ServerFailureError))
        self.assertEqual(len(self.http.calls("GET", JOBS + "/J1")), 3)
        self.assertEqual(len(self.sleep.calls), 2)

    def test_done_first_poll(self):
        self.http.route("GET", JOBS + "/J1", (200, entry("J1", done=True)))
        result = self.run_search()
        self.assertEqual(len(result), 0)
        self.assertEqual(self.sleep.calls, [])
        self.assertEqual(self.http.calls("GET", JOBS + "/J1/results"), [])

    def test_poll_error(self):
        self.http.route("GET", JOBS + "/J1",
            (200, entry("J1")), (500, ""))
        self.assertRaises(HTTPError, self.run_search)
        self.assertEqual(len(self.http.calls("GET", JOBS + "/J1")), 2)

    def test_wait_without_progress(self):
        self.http.route("GET", JOBS + "/J1",
            (200, entry("J1")), (200, entry("J1", done=True)))
        job = self.service.jobs["J1"]
        status = search.wait(job, interval=1.5, sleep=self.sleep)
        self.assertTrue(status.is_done)
        self.assertEqual(self.sleep.calls, [1.5])

if __name__ == "__main__":
    unittest.main()
