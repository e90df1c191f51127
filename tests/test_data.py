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

import unittest

import splunkjobs.data as data
from splunkjobs.data import field

from fakehttp import entry, feed

class LoadTestCase(unittest.TestCase):
    def test_empty(self):
        self.assertEqual(data.load(None), None)
        self.assertEqual(data.load(""), None)
        self.assertEqual(data.load(b"  \n"), None)

    def test_simple(self):
        result = data.load("<a><b>1</b><c>two</c></a>")
        self.assertEqual(result, {'b': "1", 'c': "two"})
        self.assertEqual(result.c, "two")

    def test_repeated(self):
        result = data.load("<a><b>1</b><b>2</b><b>3</b></a>")
        self.assertEqual(result.b, ["1", "2", "3"])

    def test_attrs(self):
        result = data.load('<a><b k="v">text</b><c k="v"/></a>')
        self.assertEqual(result.b, {'k': "v", '$text': "text"})
        self.assertEqual(result.c, {'k': "v"})

    def test_dict_and_list(self):
        result = data.load(
            '<a xmlns:s="http://dev.splunk.com/ns/rest"><s:dict>'
            '<s:key name="n">1</s:key>'
            '<s:key name="l"><s:list><s:item>x</s:item><s:item>y</s:item></s:list></s:key>'
            '</s:dict></a>')
        self.assertEqual(result, {'n': "1", 'l': ["x", "y"]})

    def test_bad_dict(self):
        self.assertRaises(ValueError, data.load,
            '<a xmlns:s="http://dev.splunk.com/ns/rest"><s:dict><s:item/></s:dict></a>')

    def test_path(self):
        self.assertEqual(
            data.load("<a><b><c>1</c></b><b><c>2</c></b></a>", "b"),
            [{'c': "1"}, {'c': "2"}])
        self.assertEqual(data.load("<a/>", "b"), None)

class FieldTestCase(unittest.TestCase):
    def test_entry(self):
        loaded = data.load(entry("1310078998.12", done=True, progress="1.0",
            results=42, messages={'fatal': "Unknown search command 'foo'."}))
        self.assertEqual(field(loaded, "sid"), "1310078998.12")
        self.assertEqual(field(loaded, "isDone"), "1")
        self.assertEqual(field(loaded, "doneProgress"), "1.0")
        self.assertEqual(field(loaded, "resultCount"), "42")
        self.assertEqual(field(loaded, "messages"),
            {'fatal': "Unknown search command 'foo'."})
        self.assertEqual(loaded.author.name, "admin")

    def test_missing(self):
        loaded = data.load(entry("1"))
        self.assertEqual(field(loaded, "doneProgress"), None)
        self.assertEqual(field(loaded, "noSuchKey"), None)
        self.assertEqual(field({}, "sid"), None)
        self.assertEqual(field({'content': "text"}, "sid"), None)
        self.assertEqual(field(None, "sid"), None)

    def test_entries(self):
        loaded = data.load(feed(
            entry("1", root=False), entry("2", root=False)))
        self.assertEqual([field(item, "sid") for item in data.entries(loaded)],
            ["1", "2"])

        # A feed with a single entry still yields a list
        loaded = data.load(feed(entry("1", root=False)))
        self.assertEqual(len(data.entries(loaded)), 1)

        self.assertEqual(data.entries(data.load(feed())), [])
        self.assertEqual(data.entries(None), [])

if __name__ == "__main__":
    unittest.main()
