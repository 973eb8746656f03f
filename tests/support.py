import json

import requests

BASE_URL = "https://nexenta.local:8443/"


def make_response(status_code, body=None, url=BASE_URL):
    resp = requests.Response()
    resp.status_code = status_code
    resp.url = url
    resp.encoding = "utf-8"
    if body is None:
        resp._content = b""
    elif isinstance(body, bytes):
        resp._content = body
    else:
        resp._content = json.dumps(body).encode("utf-8")
    return resp


class FakeHttp:
    """Stands in for requests.Session; routes calls to ``handler``."""

    def __init__(self, handler):
        self.handler = handler
        self.headers = {}
        self.verify = True
        self.calls = []

    def request(self, method, url, data=None, headers=None, timeout=None):
        self.calls.append((method, url, data, dict(headers or {})))
        return self.handler(method, url, data, headers or {})
