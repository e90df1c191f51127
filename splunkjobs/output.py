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

"""Writes result rows to a file, or stdout, as json, csv or xml."""

import csv
import json
import sys
from xml.etree.ElementTree import Element, SubElement, tostring

__all__ = ["write"]

def fieldnames(rows):
    """Union of the rows' field names, in the order first seen."""
    names = []
    seen = set()
    for row in rows:
        for name in row:
            if name not in seen:
                seen.add(name)
                names.append(name)
    return names

def _flat(value):
    if value is None: return ""
    if isinstance(value, list): return "\n".join([str(v) for v in value])
    return value

def write_json(file, rows):
    json.dump(rows, file, indent=2)
    file.write("\n")

def write_csv(file, rows):
    writer = csv.DictWriter(file, fieldnames(rows), restval="")
    writer.writeheader()
    for row in rows:
        writer.writerow(dict([(k, _flat(v)) for k, v in row.items()]))

def write_xml(file, rows):
    root = Element("results")
    for row in rows:
        result = SubElement(root, "result")
        for key, value in row.items():
            item = SubElement(result, "field", k=key)
            values = value if isinstance(value, list) else [value]
            for v in values:
                text = SubElement(SubElement(item, "value"), "text")
                text.text = "" if v is None else str(v)
    file.write("<?xml version='1.0' encoding='UTF-8'?>\n")
    file.write(tostring(root, encoding="unicode"))
    file.write("\n")

_writers = {
    'json': write_json,
    'csv': write_csv,
    'xml': write_xml,
}

def write(destination, output_mode, data):
    """Write the rows of data (a ResultSet, ResultPage or any iterable of
       dicts) to destination, a path, or stdout when None or '-'."""
    writer = _writers.get(output_mode, None)
    if writer is None:
        raise ValueError("Unknown output mode '%s'" % output_mode)
    rows = list(data)
    if destination is None or destination == "-":
        writer(sys.stdout, rows)
        sys.stdout.flush()
        return
    with open(destination, "w", newline="", encoding="utf-8") as file:
        writer(file, rows)
