# tests/test_store.py

"""
Ce qu'on teste :
→ Le rendu des filtres PocketBase (noms de champs, dates, échappement)
→ La pagination jusqu'à totalPages
→ La conversion des erreurs transport en FetchFailed
→ La normalisation des enregistrements bruts

Ce qu'on mocke :
→ requests.Session (pas d'appel HTTP réel)
→ Le client Supabase
"""

import pytest
import requests
from datetime import datetime
from threading import Event
from unittest.mock import MagicMock

from errors import ConfigurationError, FetchAborted, FetchFailed
from models import Lead, Invoice, Contact, invoice_total
from store import get_store, list_supported_backends
from store.base import Condition, Query, eq, gte, lt, in_, parse_datetime
from store.memory import MemoryStore
from store.pocketbase import PocketBaseStore
from store.supabase import SupabaseStore


def _response(payload: dict) -> MagicMock:
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class TestPocketBaseFilter:

    def setup_method(self):
        self.store = PocketBaseStore("http://pb.local", session=MagicMock())

    def test_conjunction_with_dates(self):
        expr = self.store.render_filter([
            eq("status", "gagne"),
            gte("closed_at", datetime(2025, 5, 16, 10, 0)),
        ])
        assert expr == 'status = "gagne" && closed_at >= "2025-05-16 10:00:00.000Z"'

    def test_logical_names_mapped(self):
        expr = self.store.render_filter([
            lt("created_at", datetime(2025, 6, 16)),
            eq("owner_id", "u_com1"),
        ])
        assert expr == 'created < "2025-06-16 00:00:00.000Z" && owner = "u_com1"'

    def test_in_becomes_or_group(self):
        expr = self.store.render_filter([in_("status", ["a_faire", "en_cours"])])
        assert expr == '(status = "a_faire" || status = "en_cours")'

    def test_empty_in_matches_nothing(self):
        assert self.store.render_filter([in_("status", [])]) == 'id = ""'

    def test_quotes_escaped(self):
        expr = self.store.render_filter([eq("name", 'Le "Zinc"')])
        assert expr == 'name = "Le \\"Zinc\\""'

    def test_numbers_not_quoted(self):
        assert self.store.render_filter([gte("value", 1000)]) == "value >= 1000"

    def test_sort_mapped(self):
        assert self.store.render_sort("-created_at,name") == "-created,name"

    def test_unknown_operator_rejected(self):
        with pytest.raises(ConfigurationError):
            Condition("name", "like", "Acme")


class TestPocketBasePagination:

    def setup_method(self):
        self.session = MagicMock()
        self.store = PocketBaseStore(
            "http://pb.local/", token="tok", page_size=2, session=self.session
        )

    def test_walks_all_pages(self):
        self.session.get.side_effect = [
            _response({"page": 1, "perPage": 2, "totalItems": 3, "totalPages": 2,
                       "items": [{"id": "l1", "value": 100, "status": "gagne"},
                                 {"id": "l2", "value": 200, "status": "nouveau"}]}),
            _response({"page": 2, "perPage": 2, "totalItems": 3, "totalPages": 2,
                       "items": [{"id": "l3", "value": 300, "status": "perdu"}]}),
        ]

        leads = self.store.fetch(Query("leads", (eq("status", "gagne"),), per_page=2))

        assert [l.id for l in leads] == ["l1", "l2", "l3"]
        assert all(isinstance(l, Lead) for l in leads)
        assert self.session.get.call_count == 2

        first_call = self.session.get.call_args_list[0]
        assert first_call.args[0] == "http://pb.local/api/collections/leads/records"
        assert first_call.kwargs["params"] == {
            "page": 1, "perPage": 2, "filter": 'status = "gagne"',
        }
        assert first_call.kwargs["headers"] == {"Authorization": "tok"}
        assert self.session.get.call_args_list[1].kwargs["params"]["page"] == 2

    def test_limit_stops_early(self):
        self.session.get.return_value = _response({
            "page": 1, "perPage": 2, "totalItems": 10, "totalPages": 5,
            "items": [{"id": "a1"}, {"id": "a2"}],
        })

        items = self.store.fetch_all(Query("activities", per_page=2, limit=1))

        assert len(items) == 1
        assert self.session.get.call_count == 1

    def test_transport_error_raises_fetch_failed(self):
        self.session.get.side_effect = requests.ConnectionError("connexion refusée")

        with pytest.raises(FetchFailed) as exc_info:
            self.store.fetch(Query("invoices"))
        assert exc_info.value.entity == "invoices"

    def test_http_error_raises_fetch_failed(self):
        response = _response({})
        response.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
        self.session.get.return_value = response

        with pytest.raises(FetchFailed):
            self.store.fetch(Query("leads"))

    def test_invalid_json_raises_fetch_failed(self):
        response = MagicMock()
        response.raise_for_status.return_value = None
        response.json.side_effect = ValueError("Expecting value")
        self.session.get.return_value = response

        with pytest.raises(FetchFailed):
            self.store.fetch(Query("leads"))

    def test_cancelled_before_first_page(self):
        cancel = Event()
        cancel.set()

        with pytest.raises(FetchAborted):
            self.store.fetch(Query("leads"), cancel=cancel)
        self.session.get.assert_not_called()

    def test_page_size_capped(self):
        store = PocketBaseStore("http://pb.local", page_size=5000, session=MagicMock())
        assert store.page_size == 500


class TestSupabaseStore:

    def setup_method(self):
        self.builder = MagicMock()
        for method in ("select", "eq", "neq", "gte", "lt", "in_", "order", "range"):
            getattr(self.builder, method).return_value = self.builder

        self.client = MagicMock()
        self.client.table.return_value = self.builder
        self.store = SupabaseStore(client=self.client, page_size=2)

    def test_conditions_and_range(self):
        self.builder.execute.return_value = MagicMock(
            data=[{"id": "e1", "amount": 500, "category": "salon",
                   "date": "2025-06-06T10:00:00+00:00"}],
            count=1,
        )
        start = datetime(2025, 5, 16, 10, 0)

        expenses = self.store.fetch(Query(
            "marketing_expenses",
            (in_("category", ["salon", "email"]),),
            sort="-date",
            per_page=2,
            window=("date", start, None),
        ))

        assert len(expenses) == 1
        assert expenses[0].amount == 500
        self.client.table.assert_called_with("marketing_expenses")
        self.builder.select.assert_called_with("*", count="exact")
        self.builder.in_.assert_called_with("category", ["salon", "email"])
        self.builder.gte.assert_called_with("date", start.isoformat())
        self.builder.order.assert_called_with("date", desc=True)
        self.builder.range.assert_called_with(0, 1)

    def test_client_error_raises_fetch_failed(self):
        self.builder.execute.side_effect = RuntimeError("JWT expired")

        with pytest.raises(FetchFailed) as exc_info:
            self.store.fetch(Query("leads"))
        assert "JWT expired" in str(exc_info.value)

    def test_missing_credentials(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_SERVICE_KEY", raising=False)

        with pytest.raises(ConfigurationError):
            SupabaseStore().fetch(Query("leads"))


class TestNormalization:

    def setup_method(self):
        self.store = MemoryStore()

    def test_lead_pocketbase_fields(self):
        lead = self.store.normalize("leads", {
            "id": "lead_x", "value": "7500", "status": "proposition",
            "owner": "u_com1", "contact": "c1", "company": "comp_1",
            "created": "2025-06-04 10:00:00.000Z", "closed_at": "",
        })
        assert lead.owner_id == "u_com1"
        assert lead.contact_id == "c1"
        assert lead.value == 7500
        assert lead.created_at == datetime(2025, 6, 4, 10, 0)
        assert lead.closed_at is None

    def test_lead_defaults(self):
        lead = self.store.normalize("leads", {"id": "lead_y", "value": "abc"})
        assert lead.status == "nouveau"
        assert lead.value == 0
        assert lead.campaign_id is None

    def test_invoice_total_recomputed_when_missing(self):
        invoice = self.store.normalize("invoices", {
            "id": "inv_x", "amount": 1000, "tax_rate": 20, "status": "emise",
        })
        assert isinstance(invoice, Invoice)
        assert invoice.total == pytest.approx(1200)

    def test_invoice_total_uses_invoice_rule(self):
        invoice = self.store.normalize("invoices", {
            "id": "inv_y", "amount": "99.99", "tax_rate": "5.5", "total": "",
        })
        assert invoice.total == invoice_total(99.99, 5.5) == 105.49

    def test_contact_tags_from_string(self):
        contact = self.store.normalize("contacts", {
            "id": "c9", "first_name": "Léa", "last_name": "Morel",
            "tags": "client, vip",
        })
        assert isinstance(contact, Contact)
        assert contact.tags == ("client", "vip")
        assert contact.is_client
        assert contact.full_name == "Léa Morel"

    def test_record_without_id_skipped(self):
        store = MemoryStore({"leads": [{"value": 10}, {"id": "ok", "value": 20}]})
        leads = store.fetch(Query("leads"))
        assert [l.id for l in leads] == ["ok"]

    def test_unknown_entity_rejected(self):
        with pytest.raises(ConfigurationError):
            self.store.fetch(Query("invoices_archive"))

    @pytest.mark.parametrize("raw, expected", [
        ("2025-06-16 10:00:00.000Z", datetime(2025, 6, 16, 10, 0)),
        ("2025-06-16T12:00:00+02:00", datetime(2025, 6, 16, 10, 0)),
        ("2025-06-16", datetime(2025, 6, 16)),
        ("", None),
        (None, None),
        ("pas une date", None),
    ])
    def test_parse_datetime(self, raw, expected):
        assert parse_datetime(raw) == expected


class TestMemoryStore:

    def test_window_and_sort(self, memory_store):
        leads = memory_store.fetch(Query(
            "leads",
            (eq("status", "gagne"),),
            sort="-closed_at",
            window=("closed_at", datetime(2025, 6, 1), datetime(2025, 6, 16, 10)),
        ))
        assert [l.id for l in leads] == ["lead_005", "lead_002"]


class TestStoreFactory:

    def test_supported_backends(self):
        assert list_supported_backends() == ["pocketbase", "supabase", "memory"]

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError):
            get_store("mysql")

    def test_pocketbase_requires_url(self, monkeypatch):
        monkeypatch.delenv("POCKETBASE_URL", raising=False)
        with pytest.raises(ConfigurationError):
            get_store("pocketbase")

    def test_pocketbase_from_env(self, monkeypatch):
        monkeypatch.setenv("POCKETBASE_URL", "http://pb.local:8090")
        monkeypatch.setenv("POCKETBASE_TOKEN", "secret")

        store = get_store("pocketbase", page_size=100)

        assert isinstance(store, PocketBaseStore)
        assert store.base_url == "http://pb.local:8090"
        assert store.page_size == 100

    def test_backend_from_env(self, monkeypatch):
        monkeypatch.setenv("CRM_STORE_BACKEND", "memory")
        assert isinstance(get_store(), MemoryStore)
