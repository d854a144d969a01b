import threading
from datetime import date

import pytest
from sqlalchemy.orm import sessionmaker

from db import Base, make_engine
from models import Account, Transaction
from app.services.account_resolver import resolve_account_id
from app.services.transaction_store import insert_transaction

ROUNDS = 10


@pytest.fixture
def file_engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'concurrent.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


def _run_pair(engine, work):
    """Run work(session) in two threads released together; returns (results, errors)."""
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    barrier = threading.Barrier(2)
    results, errors = [], []
    lock = threading.Lock()

    def runner():
        session = Session()
        try:
            barrier.wait()
            value = work(session)
            with lock:
                results.append(value)
        except Exception as e:
            with lock:
                errors.append(repr(e))
        finally:
            session.close()

    threads = [threading.Thread(target=runner) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results, errors


def test_two_threads_resolve_same_new_account(file_engine):
    for i in range(ROUNDS):
        last4 = f"{1000 + i}"
        results, errors = _run_pair(
            file_engine, lambda s: resolve_account_id(s, last4, "AD-HDFCBK", 1)
        )

        assert errors == []
        assert len(results) == 2
        assert results[0] is not None
        assert results[0] == results[1]

    Session = sessionmaker(bind=file_engine)
    with Session() as s:
        assert s.query(Account).count() == ROUNDS


def test_two_threads_insert_same_transaction(file_engine):
    fields = {
        "amount": 500,
        "direction": "debit",
        "merchant": "Starbucks",
        "owner_id": 1,
        "date": date(2024, 1, 5),
    }

    for i in range(ROUNDS):
        row = dict(fields, date=date(2024, 1, 1 + i))
        results, errors = _run_pair(file_engine, lambda s: insert_transaction(s, row))

        assert errors == []
        assert len(results) == 2
        assert results[0] == results[1]

    Session = sessionmaker(bind=file_engine)
    with Session() as s:
        assert s.query(Transaction).count() == ROUNDS
