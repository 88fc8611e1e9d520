"""In-memory stand-ins for the Supabase client used by the cloud backend tests."""
from __future__ import annotations

from types import SimpleNamespace


class DummyResp:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class DummyQuery:
    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.calls: list[tuple] = []

    def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        return self

    def select(self, *args, **kwargs):
        return self._record("select", *args, **kwargs)

    def insert(self, *args, **kwargs):
        return self._record("insert", *args, **kwargs)

    def update(self, *args, **kwargs):
        return self._record("update", *args, **kwargs)

    def delete(self, *args, **kwargs):
        return self._record("delete", *args, **kwargs)

    def eq(self, *args, **kwargs):
        return self._record("eq", *args, **kwargs)

    def in_(self, *args, **kwargs):
        return self._record("in_", *args, **kwargs)

    def order(self, *args, **kwargs):
        return self._record("order", *args, **kwargs)

    def limit(self, *args, **kwargs):
        return self._record("limit", *args, **kwargs)

    def called(self, name):
        return [call for call in self.calls if call[0] == name]

    def execute(self):
        return self.client.respond(self)


class DummyFunctions:
    def __init__(self, payload=b'{"users": []}'):
        self.payload = payload
        self.invocations: list[tuple] = []

    def invoke(self, name, invoke_options=None):
        self.invocations.append((name, invoke_options))
        return self.payload


class DummyClient:
    """``responses`` maps a table (or ``rpc:<name>``) to rows, a DummyResp,
    an exception to raise, or a callable taking the query."""

    def __init__(self, responses=None, *, functions=None, auth=None):
        self.responses = responses or {}
        self.queries: list[DummyQuery] = []
        self.functions = functions or DummyFunctions()
        self.auth = auth

    def table(self, name):
        query = DummyQuery(self, name)
        self.queries.append(query)
        return query

    def rpc(self, name, params):
        query = DummyQuery(self, f"rpc:{name}")
        query.calls.append(("rpc", (name, params), {}))
        self.queries.append(query)
        return query

    def queries_for(self, table):
        return [q for q in self.queries if q.table == table]

    def respond(self, query):
        result = self.responses.get(query.table, [])
        if isinstance(result, Exception):
            raise result
        if callable(result):
            result = result(query)
        if isinstance(result, DummyResp):
            return result
        return DummyResp(result)


class DummyAuth:
    def __init__(self, *, session=None, sign_in_error=None):
        self.session = session
        self.sign_in_error = sign_in_error
        self.listeners = []
        self.sign_ins: list[dict] = []
        self.updates: list[dict] = []
        self.signed_out = False

    def on_auth_state_change(self, callback):
        self.listeners.append(callback)
        return SimpleNamespace(unsubscribe=lambda: self.listeners.remove(callback))

    def get_session(self):
        return self.session

    def sign_in_with_password(self, credentials):
        self.sign_ins.append(credentials)
        if self.sign_in_error is not None:
            raise self.sign_in_error
        return SimpleNamespace(session=self.session)

    def update_user(self, attributes):
        self.updates.append(attributes)
        return SimpleNamespace(user=getattr(self.session, "user", None))

    def sign_out(self):
        self.signed_out = True
        self.session = None


def session_for(user_id: str, email: str = "ravi@company.com"):
    return SimpleNamespace(user=SimpleNamespace(id=user_id, email=email), access_token="jwt")
