"""
Ledger notarizer and the background worker that wraps it.
"""
import uuid
from datetime import datetime

import pytest
import requests

from app.core.exceptions import NotarizationError
from app.core.notarization import _perform_notarization
from app.db.schema import ProductBatch, SupplyChainStage
from app.services import notarization as notarization_module
from app.services.notarization import LedgerNotarizer

from conftest import engine, FailingNotarizer, RecordingNotarizer, make_batch


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        return self.payload


class TestLedgerNotarizer:

    def test_metadata_shape(self, ledger_notarizer):
        batch_id, actor_id = uuid.uuid4(), uuid.uuid4()

        metadata = ledger_notarizer.build_metadata(
            batch_id, SupplyChainStage.FACTORY, SupplyChainStage.WASHING_STATION, actor_id)

        assert metadata["batch_id"] == str(batch_id)
        assert metadata["changed_by"] == str(actor_id)
        assert metadata["previous_stage"] == "washing_station"
        assert metadata["new_stage"] == "factory"
        assert metadata["action"] == "stage_update"
        assert metadata["network"] == "preprod"

    def test_content_hash_is_stable_and_tx_shaped(self):
        metadata = {"batch_id": "b1", "new_stage": "factory"}

        first = LedgerNotarizer.content_hash(metadata)

        assert first == LedgerNotarizer.content_hash(dict(reversed(list(metadata.items()))))
        assert len(first) == 64
        int(first, 16)

    def test_content_hash_stored_without_relay(self, db_session, coffee_batch, ledger_notarizer):
        tx_hash = ledger_notarizer.notarize(
            coffee_batch.id, SupplyChainStage.WASHING_STATION,
            SupplyChainStage.FARMER, coffee_batch.farmer_id)

        db_session.expire_all()
        assert db_session.get(ProductBatch, coffee_batch.id).blockchain_tx_hash == tx_hash
        assert len(tx_hash) == 64

    def test_relay_hash_used_when_configured(self, db_session, coffee_batch, monkeypatch):
        captured = {}

        def fake_post(url, json, timeout):
            captured.update(url=url, json=json, timeout=timeout)
            return FakeResponse({"tx_hash": "relay-tx-hash"})

        monkeypatch.setattr(notarization_module.requests, "post", fake_post)
        notarizer = LedgerNotarizer(
            engine=engine, relay_url="http://relay.local/submit", timeout=3.0)

        tx_hash = notarizer.notarize(
            coffee_batch.id, SupplyChainStage.WASHING_STATION,
            SupplyChainStage.FARMER, coffee_batch.farmer_id)

        assert tx_hash == "relay-tx-hash"
        assert captured["url"] == "http://relay.local/submit"
        assert captured["timeout"] == 3.0
        assert captured["json"]["label"] == 674
        assert captured["json"]["metadata"]["batch_id"] == str(coffee_batch.id)

        db_session.expire_all()
        assert db_session.get(ProductBatch, coffee_batch.id).blockchain_tx_hash == "relay-tx-hash"

    def test_relay_failure_falls_back_to_content_hash(self, db_session, coffee_batch, monkeypatch):
        def fake_post(url, json, timeout):
            raise requests.Timeout("relay timed out")

        monkeypatch.setattr(notarization_module.requests, "post", fake_post)
        notarizer = LedgerNotarizer(engine=engine, relay_url="http://relay.local/submit")

        tx_hash = notarizer.notarize(
            coffee_batch.id, SupplyChainStage.WASHING_STATION,
            SupplyChainStage.FARMER, coffee_batch.farmer_id)

        assert len(tx_hash) == 64
        db_session.expire_all()
        assert db_session.get(ProductBatch, coffee_batch.id).blockchain_tx_hash == tx_hash

    def test_relay_error_status_falls_back(self, coffee_batch, monkeypatch):
        monkeypatch.setattr(
            notarization_module.requests, "post",
            lambda url, json, timeout: FakeResponse({}, status_code=502))
        notarizer = LedgerNotarizer(engine=engine, relay_url="http://relay.local/submit")

        tx_hash = notarizer.notarize(
            coffee_batch.id, SupplyChainStage.FACTORY,
            SupplyChainStage.WASHING_STATION, coffee_batch.farmer_id)

        assert len(tx_hash) == 64

    def test_relay_non_object_body_falls_back(self, db_session, coffee_batch, monkeypatch):
        monkeypatch.setattr(
            notarization_module.requests, "post",
            lambda url, json, timeout: FakeResponse(["not", "an", "object"]))
        notarizer = LedgerNotarizer(engine=engine, relay_url="http://relay.local/submit")

        tx_hash = notarizer.notarize(
            coffee_batch.id, SupplyChainStage.WASHING_STATION,
            SupplyChainStage.FARMER, coffee_batch.farmer_id)

        assert len(tx_hash) == 64
        db_session.expire_all()
        assert db_session.get(ProductBatch, coffee_batch.id).blockchain_tx_hash == tx_hash

    def test_supplied_hash_is_not_overwritten(self, db_session, farmer, ledger_notarizer):
        batch = make_batch(db_session, farmer, blockchain_tx_hash="client-tx")

        tx_hash = ledger_notarizer.notarize(
            batch.id, SupplyChainStage.WASHING_STATION,
            SupplyChainStage.FARMER, farmer.id, supplied_tx_hash="client-tx")

        assert tx_hash == "client-tx"
        db_session.expire_all()
        assert db_session.get(ProductBatch, batch.id).blockchain_tx_hash == "client-tx"

    def test_soft_deleted_batch_raises(self, db_session, coffee_batch, ledger_notarizer):
        coffee_batch.deleted_at = datetime.utcnow()
        db_session.add(coffee_batch)
        db_session.commit()

        with pytest.raises(NotarizationError):
            ledger_notarizer.notarize(
                coffee_batch.id, SupplyChainStage.WASHING_STATION,
                SupplyChainStage.FARMER, coffee_batch.farmer_id)

        db_session.expire_all()
        assert db_session.get(ProductBatch, coffee_batch.id).blockchain_tx_hash is None

    def test_missing_batch_raises(self, db_session, ledger_notarizer):
        with pytest.raises(NotarizationError):
            ledger_notarizer.notarize(
                uuid.uuid4(), SupplyChainStage.FACTORY,
                SupplyChainStage.WASHING_STATION, uuid.uuid4())


class TestPerformNotarization:

    def test_forwards_call(self):
        notarizer = RecordingNotarizer()
        batch_id, actor_id = uuid.uuid4(), uuid.uuid4()

        _perform_notarization(
            notarizer,
            batch_id=batch_id,
            new_stage=SupplyChainStage.EXPORTER,
            old_stage=SupplyChainStage.FACTORY,
            actor_id=actor_id
        )

        assert notarizer.calls[0]["batch_id"] == batch_id
        assert notarizer.calls[0]["old_stage"] == SupplyChainStage.FACTORY

    def test_swallows_failures(self):
        notarizer = FailingNotarizer()

        _perform_notarization(
            notarizer,
            batch_id=uuid.uuid4(),
            new_stage=SupplyChainStage.EXPORTER,
            old_stage=SupplyChainStage.FACTORY,
            actor_id=uuid.uuid4()
        )

        assert notarizer.attempts == 1

    def test_swallows_unexpected_errors(self, db_session, ledger_notarizer):
        # Batch never existed: the sink raises, the worker logs and returns.
        _perform_notarization(
            ledger_notarizer,
            batch_id=uuid.uuid4(),
            new_stage=SupplyChainStage.EXPORTER,
            old_stage=SupplyChainStage.FACTORY,
            actor_id=uuid.uuid4()
        )
