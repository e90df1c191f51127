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

"""Command line option rules and config file loading."""

from optparse import OptionParser
from os import path
import sys

from splunkjobs.util import record

__all__ = ["error", "parse", "parser", "Parser"]

# Config files named with --config are loaded once the command line has been
# scanned, so that options given on the command line win.
def config(option, opt, value, parser):
    parser.configs.append(value)

# Print the given message to stderr, and optionally exit
def error(message, exitCode=None):
    print("Error: %s" % message, file=sys.stderr)
    if exitCode is not None: sys.exit(exitCode)

# Default connection rules
SPLUNK_RULES = {
    'config': {
        'flags': ["--config"],
        'action': "callback",
        'callback': config,
        'type': "string",
        'help': "Load options from config file"
    },
    'scheme': {
        'flags': ["--scheme"],
        'default': "https",
        'help': "Scheme (default 'https')",
    },
    'host': {
        'flags': ["--host"],
        'default': "localhost",
        'help': "Host name (default 'localhost')"
    },
    'port': {
        'flags': ["--port"],
        'default': "8089",
        'help': "Port number (default 8089)"
    },
    'username': {
        'flags': ["--username"],
        'help': "Username to login with"
    },
    'password': {
        'flags': ["--password"],
        'help': "Password to login with"
    },
    'verify': {
        'flags': ["--verify"],
        'action': "store_true",
        'default': False,
        'help': "Validate the server certificate (off by default)"
    },
    'ca_file': {
        'flags': ["--ca_file"],
        'help': "CA certificate bundle used with --verify"
    },
    'verbose': {
        'flags': ["--verbose"],
        'action': "store_true",
        'default': False,
        'help': "Log each request"
    },
}

class Parser(OptionParser):
    def __init__(self, rules=None, **kwargs):
        OptionParser.__init__(self, **kwargs)
        self.dests = set()
        self.configs = []
        self.result = record({'args': [], 'kwargs': record()})
        if rules is not None: self.init(rules)

    def init(self, rules):
        """Initialize the parser with the given command rules."""
        for dest in rules.keys():
            rule = rules[dest]

            # Assign defaults ourselves here, instead of in the option parser
            # itself in order to allow for multiple calls to parse (dont want
            # subsequent calls to override previous values with default vals).
            if 'default' in rule:
                self.result['kwargs'][dest] = rule['default']

            flags = rule['flags']
            kwargs = {'action': rule.get('action', "store")}
            # NOTE: Don't provision the parser with defaults here, per above.
            for key in ['callback', 'choices', 'help', 'metavar', 'type']:
                if key in rule: kwargs[key] = rule[key]
            self.add_option(*flags, dest=dest, **kwargs)

            # Remember the dest vars that we see, so that we can merge results
            self.dests.add(dest)

    def _merge(self, values):
        for dest in self.dests:
            value = getattr(values, dest, None)
            if value is not None:
                self.result['kwargs'][dest] = value

    # Load command options from given 'config' file. Long form options may omit
    # the leading "--", and if so we fix that up here.
    def load(self, filepath):
        argv = []
        try:
            file = open(filepath)
        except IOError:
            error("Unable to open '%s'" % filepath, 2)
        with file:
            for line in file:
                line = line.strip()
                if len(line) == 0 or line.startswith("#"): continue
                if not line.startswith("-"): line = "--" + line
                argv.append(line)
        values, args = self.parse_args(argv)
        self._merge(values)
        return self

    def loadif(self, filepath):
        """Load the given filepath if it exists, otherwise ignore."""
        if path.isfile(filepath): self.load(filepath)
        return self

    def loadrc(self, filename):
        return self.loadif(path.expanduser("~/%s" % filename))

    def parse(self, argv):
        """Parse the given argument vector."""
        self.configs = []
        values, args = self.parse_args(argv)
        # Config files may name further config files, each is loaded once
        loaded = set()
        for filepath in self.configs:
            key = path.realpath(path.expanduser(filepath))
            if key in loaded: continue
            loaded.add(key)
            self.load(filepath)
        self.result['args'] += args
        self._merge(values)
        return self

def parser(rules=None, **kwargs):
    """Instantiate a parser with the default rule set and optional extensions
       and overrides."""
    rules = SPLUNK_RULES if rules is None else dict(SPLUNK_RULES, **rules)
    return Parser(rules, **kwargs)

def parse(argv, rules=None, rcfile=None, **kwargs):
    """Parse argv with the default rules plus the given rules, after loading
       defaults from ~/<rcfile> when it exists."""
    result = parser(rules, **kwargs)
    if rcfile is not None: result.loadrc(rcfile)
    return result.parse(argv).result
