# tests/conftest.py

import pytest
from datetime import datetime, timedelta

from config import load_config
from store.memory import MemoryStore


# ─────────────────────────────────────────
# HORLOGE FIXE
# Lundi 16 juin 2025, 10h00 UTC.
# Fenêtre "month" : [16 mai 10h, 16 juin 10h)
# Fenêtre précédente : [15 avril 10h, 16 mai 10h)
# ─────────────────────────────────────────

NOW = datetime(2025, 6, 16, 10, 0, 0)


def ago(days: float = 0, hours: float = 0) -> str:
    """Date au format renvoyé par PocketBase."""
    dt = NOW - timedelta(days=days, hours=hours)
    return dt.strftime("%Y-%m-%d %H:%M:%S.000Z")


# ─────────────────────────────────────────
# FIXTURES — DONNÉES RÉALISTES
# Des enregistrements qui ressemblent à ce que
# renvoie vraiment la collection PocketBase
# (owner, contact, created...).
# ─────────────────────────────────────────

@pytest.fixture
def now():
    return NOW


@pytest.fixture
def sample_users():
    return [
        {"id": "u_admin", "name": "Alice Martin", "role": "admin", "api_key": "key-admin"},
        {"id": "u_com1", "name": "Bruno Petit", "role": "commercial", "api_key": "key-com"},
        {"id": "u_com2", "name": "Chloé Durand", "role": "commercial", "api_key": ""},
        {"id": "u_std", "name": "Denis Roux", "role": "standard", "api_key": "key-std"},
    ]


@pytest.fixture
def sample_leads():
    """
    Les 5 premiers leads reproduisent le jeu de référence :
    5000/nouveau, 10000/gagne, 3000/perdu, 7500/proposition, 2000/gagne
    → pipeline ouvert 12500, gagné 12000, conversion 40%.
    Le 6e est gagné sur la période précédente.
    """
    return [
        {
            "id": "lead_001", "title": "Acme SAS — Site vitrine",
            "value": 5000, "status": "nouveau", "priority": "moyenne",
            "source": "site_web", "campaign_id": "",
            "contact": "c1", "company": "comp_1", "owner": "u_com1",
            "expected_close": ago(-30), "closed_at": "",
            "created": ago(5),
        },
        {
            "id": "lead_002", "title": "Acme SAS — Licence annuelle",
            "value": 10000, "status": "gagne", "priority": "haute",
            "source": "email", "campaign_id": "camp_1",
            "contact": "c1", "company": "comp_1", "owner": "u_com1",
            "expected_close": ago(3), "closed_at": ago(3),
            "created": ago(20),
        },
        {
            "id": "lead_003", "title": "Beta SARL — Audit",
            "value": 3000, "status": "perdu", "priority": "basse",
            "source": "salon", "campaign_id": "",
            "contact": "c2", "company": "comp_2", "owner": "u_com2",
            "expected_close": "", "closed_at": ago(2),
            "created": ago(10),
        },
        {
            "id": "lead_004", "title": "Beta SARL — Refonte CRM",
            "value": 7500, "status": "proposition", "priority": "haute",
            "source": "site_web", "campaign_id": "",
            "contact": "c2", "company": "comp_2", "owner": "u_com2",
            "expected_close": ago(-15), "closed_at": "",
            "created": ago(12),
        },
        {
            "id": "lead_005", "title": "Acme SAS — Formation",
            "value": 2000, "status": "gagne", "priority": "moyenne",
            "source": "email", "campaign_id": "",
            "contact": "c3", "company": "comp_1", "owner": "u_com2",
            "expected_close": ago(1), "closed_at": ago(1),
            "created": ago(8),
        },
        {
            "id": "lead_006", "title": "Acme SAS — Maintenance",
            "value": 4000, "status": "gagne", "priority": "moyenne",
            "source": "recommandation", "campaign_id": "",
            "contact": "c3", "company": "comp_1", "owner": "u_com1",
            "expected_close": ago(40), "closed_at": ago(40),
            "created": ago(50),
        },
    ]


@pytest.fixture
def sample_invoices():
    return [
        # Payée en 10 jours
        {
            "id": "inv_001", "status": "payee",
            "amount": 1000, "tax_rate": 20, "total": 1200,
            "lead": "lead_002", "contact": "c1",
            "issued_at": ago(25), "due_at": ago(5), "paid_at": ago(15),
        },
        {
            "id": "inv_002", "status": "emise",
            "amount": 2000, "tax_rate": 20, "total": 2400,
            "lead": "lead_005", "contact": "c3",
            "issued_at": ago(10), "due_at": ago(-20), "paid_at": "",
        },
        {
            "id": "inv_003", "status": "en_retard",
            "amount": 500, "tax_rate": 20, "total": 600,
            "lead": "", "contact": "c2",
            "issued_at": ago(28), "due_at": ago(3), "paid_at": "",
        },
        # Payée il y a longtemps : hors fenêtre, dans la tendance
        {
            "id": "inv_004", "status": "payee",
            "amount": 3000, "tax_rate": 0, "total": 3000,
            "lead": "lead_006", "contact": "c3",
            "issued_at": ago(100), "due_at": ago(70), "paid_at": ago(70),
        },
    ]


@pytest.fixture
def sample_email_logs():
    return [
        {"id": "log_001", "status": "envoye", "campaign_id": "camp_1",
         "open_count": 2, "click_count": 1, "sent_at": ago(5)},
        {"id": "log_002", "status": "ouvert", "campaign_id": "camp_1",
         "open_count": 1, "click_count": 0, "sent_at": ago(5)},
        {"id": "log_003", "status": "echoue", "campaign_id": "camp_1",
         "open_count": 0, "click_count": 0, "sent_at": ago(5)},
        {"id": "log_004", "status": "clique", "campaign_id": "camp_2",
         "open_count": 1, "click_count": 3, "sent_at": ago(40)},
        {"id": "log_005", "status": "en_attente", "campaign_id": "camp_2",
         "open_count": 0, "click_count": 0, "sent_at": ""},
    ]


@pytest.fixture
def sample_expenses():
    return [
        {"id": "exp_001", "amount": 500, "category": "salon",
         "campaign_id": "camp_2", "date": ago(10)},
        {"id": "exp_002", "amount": 1000, "category": "site_web",
         "campaign_id": "", "date": ago(20)},
        # hors fenêtre "month"
        {"id": "exp_003", "amount": 300, "category": "email",
         "campaign_id": "camp_1", "date": ago(60)},
    ]


@pytest.fixture
def sample_campaigns():
    return [
        {"id": "camp_2", "name": "Salon Lyon", "type": "event",
         "status": "termine", "total": 2, "sent": 1, "failed": 0},
        {"id": "camp_1", "name": "Newsletter Printemps", "type": "email",
         "status": "envoye", "total": 3, "sent": 2, "failed": 1},
    ]


@pytest.fixture
def sample_tasks():
    return [
        # Réunion aujourd'hui à 15h
        {"id": "task_001", "type": "reunion", "status": "a_faire",
         "assignee": "u_com1", "due_date": ago(-5 / 24), "created": ago(2)},
        # Appel en retard
        {"id": "task_002", "type": "appel", "status": "a_faire",
         "assignee": "u_com1", "due_date": ago(3), "created": ago(6)},
        {"id": "task_003", "type": "appel", "status": "terminee",
         "assignee": "u_com2", "due_date": ago(4), "completed_at": ago(4),
         "created": ago(4)},
        {"id": "task_004", "type": "email", "status": "en_cours",
         "assignee": "u_com2", "due_date": ago(-2), "created": ago(1)},
        {"id": "task_005", "type": "reunion", "status": "terminee",
         "assignee": "u_com1", "due_date": ago(1), "completed_at": ago(1),
         "created": ago(9)},
    ]


@pytest.fixture
def sample_contacts():
    return [
        {"id": "c1", "first_name": "Sophie", "last_name": "Laurent",
         "company": "comp_1", "tags": ["client"], "created": ago(100)},
        {"id": "c2", "first_name": "Jean", "last_name": "Petit",
         "company": "comp_2", "tags": ["prospect"], "created": ago(15)},
        {"id": "c3", "first_name": "Marc", "last_name": "Blanc",
         "company": "comp_1", "tags": ["client", "vip"], "created": ago(10)},
        {"id": "c4", "first_name": "Léa", "last_name": "Morel",
         "company": "", "tags": [], "created": ago(3)},
    ]


@pytest.fixture
def sample_companies():
    return [
        {"id": "comp_1", "name": "Acme SAS", "city": "Lyon", "industry": "industrie"},
        {"id": "comp_2", "name": "Beta SARL", "city": "Paris", "industry": "services"},
    ]


@pytest.fixture
def sample_activities():
    return [
        {"id": "act_001", "type": "appel", "description": "Appel de suivi Acme",
         "user": "u_com1", "created": ago(1)},
        {"id": "act_002", "type": "email", "description": "Relance devis Beta",
         "user": "u_com2", "created": ago(0, hours=2)},
        {"id": "act_003", "type": "note", "description": "Revue pipeline",
         "user": "u_admin", "created": ago(5)},
    ]


@pytest.fixture
def snapshot(
    sample_users, sample_leads, sample_invoices, sample_email_logs,
    sample_expenses, sample_campaigns, sample_tasks, sample_contacts,
    sample_companies, sample_activities,
):
    return {
        "users": sample_users,
        "leads": sample_leads,
        "invoices": sample_invoices,
        "email_logs": sample_email_logs,
        "marketing_expenses": sample_expenses,
        "campaigns": sample_campaigns,
        "tasks": sample_tasks,
        "contacts": sample_contacts,
        "companies": sample_companies,
        "activities": sample_activities,
    }


@pytest.fixture
def memory_store(snapshot):
    # petite page pour exercer la pagination
    return MemoryStore(snapshot, page_size=2)


@pytest.fixture
def config():
    return load_config({"page_size": 2, "fetch_workers": 3})
