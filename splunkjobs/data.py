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

"""Loads Splunk's Atom/REST XML payloads into nested records and extracts
   named job fields from them."""

from xml.etree.ElementTree import XML

from splunkjobs.util import record
from splunkjobs.wire import xname

__all__ = ["entries", "field", "load", "record"]

# Some responses don't use namespaces, eg: /services/search/parse
# so we look for both the extended and local version of the following names.

def isdict(name):
    return name == xname.dict or name == "dict"

def isitem(name):
    return name == xname.item or name == "item"

def iskey(name):
    return name == xname.key or name == "key"

def islist(name):
    return name == xname.list or name == "list"

def hasattrs(element):
    return len(element.attrib) > 0

def localname(name):
    rcurly = name.find('}')
    return name if rcurly == -1 else name[rcurly+1:]

# Parse a <dict> element and return a record
def load_dict(element):
    value = record()
    for child in list(element):
        if not iskey(child.tag):
            raise ValueError("Unexpected element in dict: %s" % child.tag)
        value[child.attrib["name"]] = load_value(child)
    return value

# Parse a <list> element and return a Python list
def load_list(element):
    value = []
    for child in list(element):
        if not isitem(child.tag):
            raise ValueError("Unexpected element in list: %s" % child.tag)
        value.append(load_value(child))
    return value

def load_attrs(element):
    if not hasattrs(element): return None
    attrs = record()
    for k, v in element.attrib.items(): attrs[k] = v
    return attrs

def load_element(element):
    tag = element.tag
    if isdict(tag): return load_dict(element)
    if islist(tag): return load_list(element)
    attrs = load_attrs(element)
    value = load_value(element)
    if attrs is None: return value
    if value is None: return attrs
    # If value is simple, merge into attrs dict using special key
    if isinstance(value, str):
        attrs["$text"] = value
        return attrs
    # Both attrs & value are complex, merge the two dicts
    if isinstance(value, dict):
        for k, v in attrs.items():
            value.setdefault(k, v)
    return value

def load_value(element):
    children = list(element)
    count = len(children)

    # No children, assume a simple text value
    if count == 0:
        text = element.text
        if text is None: return None
        text = text.strip()
        if len(text) == 0: return None
        return text

    # Look for the special case of a single well-known structure
    if count == 1:
        child = children[0]
        if isdict(child.tag): return load_dict(child)
        if islist(child.tag): return load_list(child)

    value = record()
    for child in children:
        name = localname(child.tag)
        item = load_element(child)
        # If we have seen this name before, promote the value to a list
        if name in value:
            current = value[name]
            if not isinstance(current, list): value[name] = [current]
            value[name].append(item)
        else:
            value[name] = item
    return value

def load(text, path=None):
    """Loads the given XML text (str or bytes) into a record, a list of
       records when `path` matches more than one element, or None."""
    if text is None: return None
    text = text.strip()
    if len(text) == 0: return None
    root = XML(text)
    items = [root] if path is None else root.findall(path)
    count = len(items)
    if count == 0:
        return None
    if count == 1:
        return load_value(items[0])
    return [load_value(item) for item in items]

def entries(feed):
    """Returns the entries of a loaded Atom feed as a list."""
    if feed is None: return []
    entry = feed.get('entry', None)
    if entry is None: return []
    if not isinstance(entry, list): entry = [entry]
    return entry

def field(entry, key):
    """Returns the text value of the named field in the <content> dict of a
       loaded job entry, or None if the entry doesn't carry it."""
    if not isinstance(entry, dict): return None
    content = entry.get('content', None)
    if not isinstance(content, dict): return None
    return content.get(key, None)
