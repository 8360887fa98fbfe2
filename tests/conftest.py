"""In-memory stand-ins for the Supabase and OpenAI clients."""

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from postgrest.exceptions import APIError


def _as_comparable(value):
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return value
    return value


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.columns = "*"
        self.filters = []
        self.orders = []
        self.row_limit = None
        self._negate = False

    # -- operations
    def select(self, columns="*"):
        self.op, self.columns = "select", columns
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    # -- filters
    def _add(self, name, column, value):
        negate, self._negate = self._negate, False
        self.filters.append((name, column, value, negate))
        return self

    @property
    def not_(self):
        self._negate = True
        return self

    def eq(self, column, value):
        return self._add("eq", column, value)

    def lt(self, column, value):
        return self._add("lt", column, value)

    def lte(self, column, value):
        return self._add("lte", column, value)

    def gte(self, column, value):
        return self._add("gte", column, value)

    def is_(self, column, value):
        return self._add("is", column, value)

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    # -- execution
    def _matches(self, row):
        for name, column, value, negate in self.filters:
            current = row.get(column)
            if name == "is":
                ok = current is None if value == "null" else current == value
            elif current is None:
                ok = False
            else:
                a, b = _as_comparable(current), _as_comparable(value)
                ok = {
                    "eq": lambda: str(current) == str(value),
                    "lt": lambda: a < b,
                    "lte": lambda: a <= b,
                    "gte": lambda: a >= b,
                }[name]()
            if ok == negate:
                return False
        return True

    def execute(self):
        self.db.calls.append((self.table, self.op))
        error = self.db.errors.get((self.table, self.op)) or self.db.errors.get((self.table, "*"))
        if error is not None:
            raise error

        rows = self.db.tables.setdefault(self.table, [])
        if self.op == "insert":
            inserted = []
            for payload in self.payload if isinstance(self.payload, list) else [self.payload]:
                row = {"id": str(uuid.uuid4()), "created_at": self.db.clock().isoformat()}
                row.update(payload)
                self.db.check_unique(self.table, row)
                rows.append(row)
                inserted.append(dict(row))
            return SimpleNamespace(data=inserted)

        matched = [r for r in rows if self._matches(r)]
        if self.op == "delete":
            self.db.tables[self.table] = [r for r in rows if r not in matched]
            return SimpleNamespace(data=[dict(r) for r in matched])

        result = [dict(r) for r in matched]
        for column, desc in reversed(self.orders):
            result.sort(key=lambda r: _as_comparable(r.get(column)), reverse=desc)
        if "news(*)" in self.columns:
            news = {n["id"]: n for n in self.db.tables.get("news", [])}
            for r in result:
                r["news"] = dict(news[r["news_id"]]) if r.get("news_id") in news else None
        if self.row_limit is not None:
            result = result[: self.row_limit]
        return SimpleNamespace(data=result)


class FakeBucket:
    def __init__(self, storage, name):
        self.storage = storage
        self.name = name

    def upload(self, path, file, file_options=None):
        if self.storage.fail_uploads:
            raise RuntimeError("storage unavailable")
        self.storage.objects[(self.name, path)] = (file, file_options)
        return SimpleNamespace(path=path)

    def get_public_url(self, path):
        return f"https://cdn.example/storage/v1/object/public/{self.name}/{path}"


class FakeStorage:
    def __init__(self):
        self.objects = {}
        self.fail_uploads = False

    def from_(self, bucket):
        return FakeBucket(self, bucket)


class FakeSupabase:
    UNIQUE = {"saved_news": ("user_id", "news_id")}

    def __init__(self):
        self.tables = {}
        self.errors = {}
        self.calls = []
        self.storage = FakeStorage()
        self.clock = lambda: datetime.now(timezone.utc)

    def table(self, name):
        return FakeQuery(self, name)

    def fail(self, table, op="*", error=None):
        self.errors[(table, op)] = error or APIError({"message": "boom", "code": "XX000"})

    def check_unique(self, table, row):
        columns = self.UNIQUE.get(table)
        if not columns:
            return
        key = tuple(row.get(c) for c in columns)
        for existing in self.tables.get(table, []):
            if tuple(existing.get(c) for c in columns) == key:
                raise APIError(
                    {
                        "message": 'duplicate key value violates unique constraint "saved_news_user_id_news_id_key"',
                        "code": "23505",
                        "details": None,
                        "hint": None,
                    }
                )


class FakeResponses:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(output_text=reply)


class FakeImages:
    def __init__(self):
        self.calls = []
        self.error = None
        self.url = "https://oaidalle.example/tmp/img.png"

    def generate(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(data=[SimpleNamespace(url=self.url, b64_json=None)])


class FakeSpeech:
    def __init__(self):
        self.calls = []
        self.content = b"openai-mp3"
        self.error = None

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(content=self.content)


class FakeOpenAI:
    def __init__(self, replies=()):
        self.responses = FakeResponses(replies)
        self.images = FakeImages()
        self.audio = SimpleNamespace(speech=FakeSpeech())


class FakeHTTPResponse:
    def __init__(self, content=b"", status=200):
        self.content = content
        self.status_code = status

    def raise_for_status(self):
        import requests

        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def iter_content(self, chunk_size=8192):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i : i + chunk_size]


class StubProvider:
    def __init__(self, name, result=None, error=None):
        self.name = name
        self.result = result
        self.error = error
        self.calls = []

    def synthesize(self, text):
        self.calls.append(text)
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def db(now):
    fake = FakeSupabase()
    # Rows get the same "now" the tests sweep against
    fake.clock = lambda: now
    return fake


@pytest.fixture
def openai_client():
    return FakeOpenAI()


@pytest.fixture
def now():
    return datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
