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

"""Submit Splunk searches, wait for their jobs and page through results."""

from splunkjobs.binding import AuthenticationError, Credentials, \
    HTTPError, NotFoundError, SplunkError, TransportError
from splunkjobs.client import connect, JobStatus, PartialPageError, \
    ServerFailureError, Service
from splunkjobs.results import fetch_all, ResultPage, ResultSet
from splunkjobs.search import normalize, SearchQuery, submit_and_wait

__version__ = "0.1.0"
