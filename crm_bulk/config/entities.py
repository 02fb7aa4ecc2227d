from __future__ import annotations

from ..models.config_models import EntityConfig

"""Built-in entity definitions (accounts, contacts, leads).

The YAML config may override any field of these per entity, or add new
entities; see crm_bulk/config/loader.py.
"""

__all__ = [
    "ACCOUNTS",
    "CONTACTS",
    "LEADS",
    "builtin_entities",
]

_COMMON_ALIASES = {
    "owner": "account_owner",
    "created by": "created_by",
    "modified by": "modified_by",
    "created time": "created_time",
    "modified time": "modified_time",
    "last activity time": "last_activity_time",
    "record id": "id",
}

ACCOUNTS = EntityConfig(
    name="accounts",
    table="accounts",
    natural_key="account_name",
    required_fields=("account_name",),
    export_fields=(
        "id", "account_name", "phone", "website",
        "industry", "company_type", "region", "country", "status",
        "description", "account_owner", "created_by", "modified_by",
        "created_time", "modified_time", "last_activity_time", "currency",
    ),
    search_fields=("account_name", "industry", "country"),
    country_fields=("country",),
    region_field="region",
    url_fields=("website",),
    header_aliases={
        **_COMMON_ALIASES,
        "account name": "account_name",
        "company": "account_name",
        "account owner": "account_owner",
        "company type": "company_type",
        "account type": "company_type",
        "billing country": "country",
    },
)

CONTACTS = EntityConfig(
    name="contacts",
    table="contacts",
    natural_key="email",
    natural_key_fallback="contact_name",
    required_fields=("contact_name",),
    export_fields=(
        "id", "contact_name", "company_name", "position", "email", "phone_no",
        "linkedin", "website", "contact_source", "industry", "region",
        "description", "contact_owner", "created_by", "modified_by",
        "created_time", "modified_time", "last_activity_time",
    ),
    search_fields=("contact_name", "company_name", "email"),
    url_fields=("linkedin", "website"),
    header_aliases={
        **_COMMON_ALIASES,
        "owner": "contact_owner",
        "contact name": "contact_name",
        "full name": "contact_name",
        "company name": "company_name",
        "account name": "company_name",
        "title": "position",
        "email address": "email",
        "email_address": "email",
        "phone": "phone_no",
        "mobile": "phone_no",
        "linkedin url": "linkedin",
        "lead source": "contact_source",
        "contact owner": "contact_owner",
    },
)

LEADS = EntityConfig(
    name="leads",
    table="leads",
    natural_key="email",
    natural_key_fallback="lead_name",
    required_fields=("lead_name",),
    export_fields=(
        "id", "lead_name", "company_name", "position", "email", "phone_no",
        "linkedin", "website", "contact_source", "lead_status", "industry",
        "country", "description", "contact_owner", "created_by", "modified_by",
        "created_time", "modified_time",
    ),
    search_fields=("lead_name", "company_name", "email"),
    country_fields=("country",),
    url_fields=("linkedin", "website"),
    header_aliases={
        **_COMMON_ALIASES,
        "owner": "contact_owner",
        "lead name": "lead_name",
        "full name": "lead_name",
        "company name": "company_name",
        "title": "position",
        "email address": "email",
        "phone": "phone_no",
        "lead source": "contact_source",
        "lead status": "lead_status",
        "lead owner": "contact_owner",
    },
)


def builtin_entities() -> dict[str, EntityConfig]:
    return {e.name: e for e in (ACCOUNTS, CONTACTS, LEADS)}
