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

"""Names and values that appear on the wire."""

from splunkjobs.util import record

default = record({
    'port': "8089",
    'scheme': "https",
})

# Namespaces of splunkd's Atom feeds and the REST structures inside them
namespace = record({
    'atom': "http://www.w3.org/2005/Atom",
    'rest': "http://dev.splunk.com/ns/rest",
})

# Returns an extended name for the given XML namespace & localname
def _xname(namespace, localname):
    return "{%s}%s" % (namespace, localname)

# Structures of the REST namespace, eg: <s:dict><s:key name="isDone">
xname = record({
    'dict': _xname(namespace.rest, "dict"),
    'item': _xname(namespace.rest, "item"),
    'key': _xname(namespace.rest, "key"),
    'list': _xname(namespace.rest, "list"),
})

# Output modes accepted by the results endpoint
OUTPUT_MODES = ["json", "csv", "xml"]
