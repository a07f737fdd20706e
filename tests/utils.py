# tests/utils.py
import json
import threading

API_KEY = "0123456789abcdef0123456789abcdef"


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, text="", headers=None, content=b""):
        self.status_code = status_code
        self.text = text
        self.headers = headers or {}
        self._content = content
        self.closed = False

    @classmethod
    def json_body(cls, payload, status_code=200):
        return cls(status_code=status_code, text=json.dumps(payload))

    def json(self):
        return json.loads(self.text)

    def iter_content(self, chunk_size=1024):
        for i in range(0, len(self._content), chunk_size):
            yield self._content[i:i + chunk_size]

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class FakeSession:
    """
    Records GET calls and replays a canned response or exception.

    With `block` set, get() waits on that event before answering, which
    lets tests cancel a request while it is in flight.
    """

    def __init__(self, response=None, error=None, block=None):
        self.response = response or FakeResponse.json_body({})
        self.error = error
        self.block = block
        self.calls = []
        self.started = threading.Event()
        self.closed = False

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        self.started.set()
        if self.block is not None:
            self.block.wait(5)
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


