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

"""Low-level bindings to the Splunk search job REST endpoints."""

import base64
import http.client
import logging
import socket
import ssl
from io import BytesIO
from urllib.parse import quote, urlencode, urlsplit
from xml.etree.ElementTree import ParseError, XML

import splunkjobs.data as data
from splunkjobs.util import record
from splunkjobs.wire import default

__all__ = [
    "AuthenticationError",
    "connect",
    "Context",
    "Credentials",
    "HTTPError",
    "NotFoundError",
    "SplunkError",
    "TransportError",
]

logger = logging.getLogger(__name__)

DEFAULT_PORT = default.port
DEFAULT_SCHEME = default.scheme

PATH_LOGIN = "/services/auth/login"
PATH_JOBS = "search/jobs"
PATH_JOB = "search/jobs/%s"
PATH_JOB_RESULTS = "search/jobs/%s/results"

def prefix(host, scheme=DEFAULT_SCHEME, port=DEFAULT_PORT):
    """Generate the scheme://host:port prefix."""
    if not host:
        raise ValueError("A host name is required")
    return "%s://%s:%s" % (scheme, host, port)

def fullpath(path):
    """Qualify a relative endpoint path with the /services root."""
    if path.startswith('/'):
        return path
    return "/services/%s" % path

def sidpath(template, sid):
    if not sid:
        raise ValueError("A search id is required")
    return template % quote(sid, safe="")

# kwargs: scheme, port
def jobs_url(host, **kwargs):
    """URL of the search job collection."""
    return prefix(host, **kwargs) + fullpath(PATH_JOBS)

def job_url(host, sid, **kwargs):
    """URL of a single search job."""
    return prefix(host, **kwargs) + fullpath(sidpath(PATH_JOB, sid))

def results_url(host, sid, **kwargs):
    """URL of a search job's results."""
    return prefix(host, **kwargs) + fullpath(sidpath(PATH_JOB_RESULTS, sid))

class Credentials:
    """Username and password used to authorize every request."""
    def __init__(self, username, password):
        self.username = username
        self.password = password

    def __repr__(self):
        return "Credentials(username=%r)" % self.username

    def auth_header(self):
        """Value of the Authorization header for these credentials."""
        token = "%s:%s" % (self.username or "", self.password or "")
        encoded = base64.b64encode(token.encode("utf-8")).decode("ascii")
        return "Basic %s" % encoded

class Context:
    """Binds credentials to a single search head.

    A context is also a context manager, leaving the block discards any
    session key obtained by login(). The Http instance carries its own TLS
    settings, so disabling certificate validation only affects requests made
    through this context."""

    # kwargs: scheme, host, port, timeout, verify, ca_file, key_file, cert_file
    def __init__(self, credentials=None, http=None, **kwargs):
        # We use the default HTTP implementation unless we are
        # explicitly passed in a new one
        self.http = Http(**kwargs) if http is None else http

        self.credentials = credentials
        self.token = None
        self.scheme = kwargs.get("scheme", DEFAULT_SCHEME)
        self.host = kwargs.get("host", None)
        self.port = kwargs.get("port", DEFAULT_PORT)
        self.prefix = prefix(self.host, self.scheme, self.port)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.logout()
        return False

    # Shared per-context request headers
    def _headers(self):
        if self.token is not None:
            return [("Authorization", self.token)]
        if self.credentials is not None:
            return [("Authorization", self.credentials.auth_header())]
        return []

    def get(self, path, timeout=None, **kwargs):
        """Context layer get endpoint access."""
        return self.http.get(
            self.url(path), self._headers(), timeout=timeout, **kwargs)

    def post(self, path, timeout=None, **kwargs):
        """Context layer post endpoint access."""
        return self.http.post(
            self.url(path), self._headers(), timeout=timeout, **kwargs)

    def login(self):
        """Exchange the context credentials for a session key."""
        if self.credentials is None:
            raise AuthenticationError(None, "No credentials to login with")
        response = self.http.post(
            self.url(PATH_LOGIN), [],
            username=self.credentials.username,
            password=self.credentials.password)
        if response.status >= 400:
            raise error_for(response)
        try:
            session = XML(response.body.read()).findtext("./sessionKey")
        except ParseError as e:
            raise SplunkError("Unreadable response from %s: %s"
                % (PATH_LOGIN, e)) from e
        if not session:
            raise AuthenticationError(None, "Login response carried no session key")
        self.token = "Splunk %s" % session
        return self

    def logout(self):
        """Context layer logout."""
        self.token = None
        return self

    def url(self, path):
        """Fully qualified URL generation."""
        return self.prefix + fullpath(path)

# kwargs: scheme, host, port, timeout, verify, ca_file, key_file, cert_file
def connect(credentials, **kwargs):
    """Establishes an authenticated context with the given host."""
    return Context(credentials, **kwargs).login()

#
# The HTTP interface below, used by the binding layer, abstracts the
# underlying HTTP library using request & response 'messages' which are dicts
# with the following structure:
#
#   # HTTP request message (all keys optional)
#   request {
#       method? : str = "GET",
#       headers? : [(str, str)*],
#       body? : str,
#   }
#
#   # HTTP response message (all keys present)
#   response {
#       status : int,
#       reason : str,
#       headers : [(str, str)*],
#       body : file,
#   }
#

def _spliturl(url):
    parts = urlsplit(url)
    port = parts.port
    if port is None:
        port = 443 if parts.scheme == "https" else 80
    path = parts.path or "/"
    if parts.query:
        path = "%s?%s" % (path, parts.query)
    return parts.scheme, parts.hostname, port, path

# Encode the given kwargs as a query string. This wrapper will also encode
# a list value as a sequence of assignments to the corresponding arg name,
# for example an argument such as 'foo=[1,2,3]' will be encoded as
# 'foo=1&foo=2&foo=3'.
def encode(**kwargs):
    """Encode variable arguments into HTTP safe strings."""
    items = []
    for key, value in kwargs.items():
        if isinstance(value, list):
            items.extend([(key, item) for item in value])
        else:
            items.append((key, value))
    return urlencode(items)

# Base HTTP class implementation, containing the vast majority
# of the logic. Subclasses merely need to implement the request(...)
# method, and pass the appropriate parameters to _build_response, which
# will construct an SDK-compliant response object.
class HttpBase:
    def __init__(self, **kwargs):
        self.timeout = kwargs.get("timeout", None)

        # Certificate validation is on unless explicitly disabled
        self.verify = kwargs.get("verify", True)
        self.key_file = kwargs.get("key_file", None)
        self.cert_file = kwargs.get("cert_file", None)
        self.ca_file = kwargs.get("ca_file", None)
        self._ssl_context = None

    @property
    def ssl_context(self):
        """The SSL context used by this instance's https connections."""
        if self._ssl_context is None:
            if self.verify:
                context = ssl.create_default_context(cafile=self.ca_file)
            else:
                context = ssl.create_default_context()
                context.check_hostname = False
                context.verify_mode = ssl.CERT_NONE
            if self.cert_file is not None:
                context.load_cert_chain(self.cert_file, self.key_file)
            self._ssl_context = context
        return self._ssl_context

    def connect(self, scheme, host, port, timeout=None):
        if timeout is None:
            timeout = self.timeout
        kwargs = {} if timeout is None else {'timeout': timeout}
        if scheme == "http":
            return http.client.HTTPConnection(host, port, **kwargs)
        if scheme == "https":
            return http.client.HTTPSConnection(
                host, port, context=self.ssl_context, **kwargs)
        raise ValueError("Unsupported scheme '%s'" % scheme)

    def get(self, url, headers=None, timeout=None, **kwargs):
        if headers is None:
            headers = []
        if kwargs:
            url = url + '?' + encode(**kwargs)
        return self.request(url, {"headers": headers}, timeout=timeout)

    def post(self, url, headers=None, timeout=None, **kwargs):
        if headers is None:
            headers = []
        headers = headers + [
            ("Content-Type", "application/x-www-form-urlencoded")]
        message = {
            "method": "POST",
            "headers": headers,
            "body": encode(**kwargs),
        }
        return self.request(url, message, timeout=timeout)

    def request(self, url, message, timeout=None):
        raise NotImplementedError("'request' must be overridden")

    def _build_response(self, status, reason, headers, body):
        return record({
            "status": status,
            "reason": reason,
            "headers": headers,
            "body": ResponseReader(body),
        })

# The actual implementation of an HTTP class using http.client. A new
# connection is opened, and closed, for every request.
class Http(HttpBase):
    def request(self, url, message, timeout=None):
        scheme, host, port, path = _spliturl(url)
        body = message.get("body", "")
        if isinstance(body, str):
            body = body.encode("utf-8")
        head = {
            "Content-Length": str(len(body)),
            "Host": host,
            "User-Agent": "splunkjobs/1.0",
            "Accept": "*/*",
        } # defaults

        for key, value in message.get("headers", []):
            head[key] = value

        method = message.get("method", "GET")

        logger.debug("** %s %s", method, url)
        connection = self.connect(scheme, host, port, timeout=timeout)
        try:
            connection.request(method, path, body, head)
            response = connection.getresponse()
            content = response.read()
        except socket.timeout as e:
            raise TransportError(url, "Request timed out") from e
        except (OSError, http.client.HTTPException) as e:
            raise TransportError(url, str(e) or e.__class__.__name__) from e
        finally:
            connection.close()

        logger.debug("=> %d %s (%d bytes)",
            response.status, response.reason, len(content))

        return self._build_response(
            response.status,
            response.reason,
            response.getheaders(),
            BytesIO(content))

class ResponseReader:
    """File-like access to a response body."""
    def __init__(self, response):
        self._response = response

    def __str__(self):
        return self.read().decode("utf-8", "replace")

    def read(self, size=None):
        """Response reader."""
        if size is None:
            return self._response.read()
        return self._response.read(size)

def extract_error_message(body):
    """Returns the (error, message) pair carried by an error response body."""
    try:
        error = data.load(body)
    except (ParseError, ValueError):
        return (None, "")
    if not isinstance(error, dict):
        return (error, "")
    messages = error.get("messages", None)
    if not isinstance(messages, dict):
        return (error, "")
    msg = messages.get("msg", None)
    if isinstance(msg, list):
        msg = msg[0]
    if isinstance(msg, dict):
        return (error, "-- %s: %s" % (msg.get("type", ""), msg.get("$text", "")))
    if isinstance(msg, str):
        return (error, "-- %s" % msg)
    return (error, "")

class SplunkError(Exception):
    pass

class HTTPError(SplunkError):
    """The server answered with an unexpected HTTP status."""
    def __init__(self, response, message=None):
        if response is None:
            self.status = None
            self.reason = None
            self.error = None
            SplunkError.__init__(self, message)
            return
        # Extract the status, reason and error message from the response
        self.status = response.status
        self.reason = response.reason
        self.error, error_msg = extract_error_message(response.body.read())
        if message is None:
            message = "HTTP %d %s %s" % (self.status, self.reason, error_msg)
        SplunkError.__init__(self, message.strip())

class AuthenticationError(HTTPError):
    pass

class NotFoundError(HTTPError):
    pass

class TransportError(SplunkError):
    """The request never produced an HTTP response."""
    def __init__(self, url, message):
        SplunkError.__init__(self, "%s (%s)" % (message, url))
        self.url = url

def error_for(response):
    """Returns the HTTPError that corresponds to the response status."""
    if response.status in (401, 403):
        return AuthenticationError(response)
    if response.status == 404:
        return NotFoundError(response)
    return HTTPError(response)
