from infrastructure.tasks.config.beat import CELERY_BEAT_SCHEDULE
from infrastructure.tasks.config.celery import celery_app
from infrastructure.tasks.tasks.payments import reconcile_payments


def test_reconcile_is_scheduled():
    entry = CELERY_BEAT_SCHEDULE["payments-reconcile"]
    assert entry["task"] == "payments.reconcile"
    assert entry["schedule"] == 300
    assert celery_app.conf.beat_schedule["payments-reconcile"]["task"] == "payments.reconcile"


def test_reconcile_task_skips_in_memory_store(monkeypatch):
    import infrastructure.document_store as document_store

    def _unexpected(*args, **kwargs):
        raise AssertionError("store should not be built for the memory backend")

    monkeypatch.setattr(document_store, "get_document_store", _unexpected)

    result = reconcile_payments.apply().get()
    assert result == {"orders_advanced": [], "claims_released": [], "receipts_generated": []}


def test_reconcile_task_runs_against_persistent_store(monkeypatch):
    import infrastructure.document_store as document_store
    from core.config import settings
    from infrastructure.document_store.memory import InMemoryDocumentStore

    built = []

    def _store(*args, **kwargs):
        store = InMemoryDocumentStore()
        built.append(store)
        return store

    monkeypatch.setattr(settings.document_store, "backend", "sqlalchemy")
    monkeypatch.setattr(document_store, "get_document_store", _store)

    result = reconcile_payments.apply().get()
    assert result == {"orders_advanced": [], "claims_released": [], "receipts_generated": []}
    assert len(built) == 1


def test_dispatcher_requests_reconciliation(monkeypatch):
    from infrastructure.tasks import TaskDispatcher

    sent = []
    monkeypatch.setattr(celery_app, "send_task", lambda name, **kwargs: sent.append((name, kwargs)))

    TaskDispatcher().request_reconciliation()
    TaskDispatcher().enqueue("payments.reconcile", kwargs={})

    assert [name for name, _ in sent] == ["payments.reconcile", "payments.reconcile"]
