"""Unit tests for audit value snapshots and entry construction."""
from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum

import pytest
from pydantic import BaseModel

from commerce_relay.core.exceptions import AuditLogValidationError
from commerce_relay.infra.audit import (
    EMPTY_VALUES_PLACEHOLDER,
    AuditAction,
    AuditContext,
    AuditLog,
    build_audit_entry,
    serialize_value,
    snapshot_original_values,
    snapshot_values,
)
from tests.fixtures.models import Money, Product


class Color(Enum):
    RED = "red"


@dataclass
class Dimensions:
    width: int
    height: int


class Address(BaseModel):
    city: str
    zip: str


@pytest.mark.unit
class TestSerializeValue:
    """Test suite for canonical value serialization."""

    @pytest.mark.parametrize("value", [None, "text", 3, 2.5, True])
    def test_json_scalars_pass_through(self, value):
        assert serialize_value(value) == value

    def test_datetime_is_iso8601(self):
        value = datetime(2025, 1, 2, 3, 4, 5, tzinfo=UTC)

        assert serialize_value(value) == "2025-01-02T03:04:05+00:00"
        assert serialize_value(date(2025, 1, 2)) == "2025-01-02"

    def test_enum_uuid_decimal(self):
        identifier = uuid.uuid4()

        assert serialize_value(Color.RED) == "red"
        assert serialize_value(identifier) == str(identifier)
        assert serialize_value(Decimal("9.99")) == "9.99"

    def test_dataclass_value_object_is_json(self):
        assert json.loads(serialize_value(Dimensions(2, 3))) == {"width": 2, "height": 3}

    def test_pydantic_value_object_is_json(self):
        assert json.loads(serialize_value(Address(city="Oslo", zip="0150"))) == {
            "city": "Oslo",
            "zip": "0150",
        }

    def test_collections_are_json(self):
        assert serialize_value(["a", "b"]) == '["a", "b"]'
        assert serialize_value({"b", "a"}) == '["a", "b"]'
        assert json.loads(serialize_value({"k": datetime(2025, 1, 1, tzinfo=UTC)})) == {
            "k": "2025-01-01T00:00:00+00:00"
        }

    def test_unknown_type_falls_back_to_str(self):
        class Opaque:
            def __str__(self) -> str:
                return "opaque"

        assert serialize_value(Opaque()) == "opaque"


@pytest.mark.unit
class TestSnapshots:
    """Test suite for snapshots read from instance state."""

    def test_snapshot_includes_only_loaded_values(self):
        product = Product(name="Mug")

        values = snapshot_values(product)

        assert values["name"] == "Mug"
        assert "created_at" not in values

    def test_composite_is_serialized_as_one_value(self):
        """Backing columns of a value object are not listed separately."""
        product = Product(name="Mug", price=Money(999, "USD"))

        values = snapshot_values(product)

        assert json.loads(values["price"]) == {"amount_cents": 999, "currency": "USD"}
        assert "price_amount" not in values
        assert "price_currency" not in values

    async def test_original_values_reflect_pending_changes(self, db_session):
        product = Product(name="Mug", price=Money(999, "USD"))
        db_session.add(product)
        await db_session.commit()

        product.name = "Large mug"
        product.price = Money(1299, "USD")

        original = snapshot_original_values(product)
        current = snapshot_values(product)
        assert original["name"] == "Mug"
        assert current["name"] == "Large mug"
        assert json.loads(original["price"])["amount_cents"] == 999
        assert json.loads(current["price"])["amount_cents"] == 1299
        assert original["id"] == current["id"] == str(product.id)

    async def test_unchanged_values_appear_in_both(self, db_session):
        product = Product(name="Mug")
        db_session.add(product)
        await db_session.commit()

        product.name = "Cup"

        assert snapshot_original_values(product)["version"] == snapshot_values(product)["version"]


@pytest.mark.unit
class TestBuildAuditEntry:
    """Test suite for build_audit_entry."""

    def _product(self) -> Product:
        return Product(id=uuid.uuid4(), name="Mug", version=1)

    def test_create_entry(self):
        product = self._product()

        entry = build_audit_entry(product, AuditAction.CREATE, AuditContext(user_id="user-42"))

        assert entry.entity_type == "Product"
        assert entry.entity_id == str(product.id)
        assert entry.action == AuditAction.CREATE
        assert entry.user_id == "user-42"
        assert entry.old_values == EMPTY_VALUES_PLACEHOLDER
        assert entry.new_values["name"] == "Mug"

    def test_delete_entry(self):
        entry = build_audit_entry(self._product(), AuditAction.DELETE)

        assert entry.old_values["name"] == "Mug"
        assert entry.new_values == EMPTY_VALUES_PLACEHOLDER
        assert entry.user_id is None

    def test_request_provenance_and_app_version(self):
        context = AuditContext(user_id="user-42", ip_address="10.0.0.1", user_agent="pytest")

        entry = build_audit_entry(
            self._product(), AuditAction.CREATE, context, app_version="1.2.3"
        )

        assert entry.ip_address == "10.0.0.1"
        assert entry.user_agent == "pytest"
        assert entry.app_version == "1.2.3"

    def test_missing_entity_id_raises(self):
        with pytest.raises(AuditLogValidationError):
            build_audit_entry(Product(name="Mug"), AuditAction.CREATE)


@pytest.mark.unit
class TestAuditLogFactory:
    def test_empty_entity_type_rejected(self):
        with pytest.raises(AuditLogValidationError) as exc_info:
            AuditLog.create(" ", "id-1", AuditAction.CREATE)

        assert exc_info.value.field == "entity_type"

    def test_empty_snapshots_use_placeholder(self):
        entry = AuditLog.create_for_update("Product", "id-1", {}, {})

        assert entry.old_values == {"_placeholder": "empty"}
        assert entry.new_values == {"_placeholder": "empty"}

    def test_create_for_create_and_delete(self):
        created = AuditLog.create_for_create("Product", "id-1", {"name": "Mug"}, user_id="u")
        deleted = AuditLog.create_for_delete("Product", "id-1", {"name": "Mug"})

        assert created.action == AuditAction.CREATE
        assert created.new_values == {"name": "Mug"}
        assert created.user_id == "u"
        assert deleted.action == AuditAction.DELETE
        assert deleted.old_values == {"name": "Mug"}
