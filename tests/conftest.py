import pytest

from linkhaven.core.models import Record


def make_record(id, title="", url=None, tags=(), created_at=0, **kwargs):
    return Record(id=id, title=title, url=url, tags=list(tags), created_at=created_at, **kwargs)


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def tagged_records():
    return [
        make_record("r1", "Python asyncio guide", "https://realpython.com/async", ["python", "async"]),
        make_record("r2", "Python packaging notes", "https://packaging.python.org/", ["python", "async"]),
        make_record("r3", "Untagged link", "https://example.com/misc"),
    ]
