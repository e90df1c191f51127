#!/usr/bin/env python
#
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

"""A command line utility for running searches and reading search jobs."""

from datetime import datetime, timedelta
from getpass import getpass
import logging
import sys

from splunkjobs.binding import Credentials, SplunkError
from splunkjobs.client import ServerFailureError, Service
from splunkjobs.cmdopts import error, parse
import splunkjobs.results as results
import splunkjobs.search as search
from splunkjobs.wire import OUTPUT_MODES

OUT_RULES = {
    'out': {
        'flags': ["--out"],
        'help': "Write results to FILE (default stdout)",
        'metavar': "FILE",
    },
    'format': {
        'flags': ["--format"],
        'default': "json",
        'type': "choice",
        'choices': OUTPUT_MODES,
        'help': "Output format: json, csv or xml (default json)",
    },
}

SEARCH_RULES = dict(OUT_RULES, **{
    'earliest': {
        'flags': ["--earliest"],
        'help': "Earliest time, ISO-8601 or a time modifier (default 24h ago)",
    },
    'latest': {
        'flags': ["--latest"],
        'help': "Latest time, ISO-8601 or a time modifier (default now)",
    },
})

LIST_RULES = {
    'author': {
        'flags': ["--author"],
        'help': "Only list jobs owned by AUTHOR",
    },
    'id': {
        'flags': ["--id"],
        'help': "Only list the job with this search id",
    },
}

FETCH_RULES = dict(OUT_RULES, **{
    'id': {
        'flags': ["--id"],
        'help': "Search id of the job to read",
    },
})

USAGE = """usage: splunkjobs <command> [options]

commands:
    search <query> [--earliest T] [--latest T] [--out FILE] [--format F]
    list-jobs [--author A] [--id ID]
    fetch-results --id ID [--out FILE] [--format F]"""

class ConsoleProgress:
    """Progress sink that redraws a single status line on stderr."""
    def __init__(self, stream=None):
        self.stream = sys.stderr if stream is None else stream
        self.active = False

    def __call__(self, activity, message, percent):
        self.stream.write("\r%s: %s [%3d%%]" % (activity, message, percent))
        self.stream.flush()
        self.active = True

    def done(self):
        if self.active:
            self.stream.write("\n")
            self.stream.flush()
            self.active = False

def _time(value, default):
    if value is None: return default
    try:
        return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S")
    except ValueError:
        return value # Assume a Splunk time modifier, eg: -24h@h

def credentials(kwargs):
    """Prompt for whatever part of the credentials wasn't configured."""
    username = kwargs.get('username', None)
    if username is None:
        username = input("Splunk username: ")
    password = kwargs.get('password', None)
    if password is None:
        password = getpass("Splunk password: ")
    return Credentials(username, password)

class Program:
    def __init__(self, service, progress=None):
        self.service = service
        self.progress = ConsoleProgress() if progress is None else progress

    def search(self, opts):
        """Run a search to completion and write its results."""
        problem = missing("search", opts)
        if problem is not None: error(problem, 2)
        kwargs = opts.kwargs
        now = datetime.now()
        query = search.SearchQuery(opts.args[0],
            _time(kwargs.get('earliest', None), now - timedelta(days=1)),
            _time(kwargs.get('latest', None), now))
        try:
            result = search.submit_and_wait(self.service, query,
                progress=self.progress,
                output_mode=kwargs['format'],
                destination=kwargs.get('out', None) or "-")
        finally:
            self.progress.done()
        if isinstance(result, ServerFailureError):
            return 1
        return 0

    def list_jobs(self, opts):
        """List the jobs on the server, newest first."""
        kwargs = opts.kwargs
        jobs = self.service.jobs.list(
            author=kwargs.get('author', None), sid=kwargs.get('id', None))
        for job in jobs:
            print("%s  %s  %s  %s  %d results  %s" % (
                job.search_id, job.published or "-", job.author or "-",
                job.dispatch_state or "-", job.result_count, job.label or ""))
        return 0

    def fetch_results(self, opts):
        """Write every result of an existing job."""
        kwargs = opts.kwargs
        problem = missing("fetch-results", opts)
        if problem is not None: error(problem, 2)
        sid = kwargs['id']
        results.fetch_all(self.service, sid, kwargs['format'],
            kwargs.get('out', None) or "-")
        return 0

    def run(self, command, opts):
        """Dispatch the given command."""
        handlers = {
            'search': self.search,
            'list-jobs': self.list_jobs,
            'fetch-results': self.fetch_results,
        }
        return handlers[command](opts)

COMMANDS = {
    'search': SEARCH_RULES,
    'list-jobs': LIST_RULES,
    'fetch-results': FETCH_RULES,
}

def missing(command, opts):
    """Describes what the command line lacks for the command, or None."""
    if command == "search" and len(opts.args) != 1:
        return "Single query argument required"
    if command == "fetch-results" and opts.kwargs.get('id', None) is None:
        return "Command requires a search id (--id)"
    return None

def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv

    if len(argv) == 0 or argv[0] in ("-h", "--help"):
        print(USAGE)
        return 0 if len(argv) > 0 else 2

    command = argv[0]
    if command not in COMMANDS:
        error("Unrecognized command: %s" % command)
        print(USAGE, file=sys.stderr)
        return 2

    usage = "usage: %%prog %s [options]" % command
    opts = parse(argv[1:], COMMANDS[command], ".splunkrc", usage=usage)
    kwargs = opts.kwargs

    # Reject incomplete commands before prompting for credentials
    problem = missing(command, opts)
    if problem is not None:
        error(problem)
        return 2

    logging.basicConfig(
        level=logging.DEBUG if kwargs['verbose'] else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr)

    try:
        with Service(credentials(kwargs),
                     scheme=kwargs['scheme'],
                     host=kwargs['host'],
                     port=kwargs['port'],
                     verify=kwargs['verify'],
                     ca_file=kwargs.get('ca_file', None)) as service:
            service.login()
            return Program(service).run(command, opts)
    except (SplunkError, OSError, ValueError) as e:
        error(str(e))
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130

if __name__ == "__main__":
    sys.exit(main())
