"""Column alias tables for each import type.

Each canonical field lists the source headers it accepts, in priority
order.  The canonical name itself is always the first alias, so a file
exported from a previous import maps back onto the same fields.  Tables
are built once at import time and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from dealflow.models import ImportType


class FieldKind(str, Enum):
    TEXT = "text"
    CATEGORICAL = "categorical"
    NUMERIC = "numeric"
    IDENTIFIER = "identifier"
    EMAIL = "email"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    aliases: tuple[str, ...]
    kind: FieldKind = FieldKind.TEXT
    choices: frozenset[str] = frozenset()
    synonyms: tuple[tuple[str, str], ...] = ()
    default: str | None = None

    def __post_init__(self) -> None:
        if not self.aliases or self.aliases[0] != self.name:
            msg = f"First alias of {self.name!r} must be the field name itself"
            raise ValueError(msg)
        if self.kind is FieldKind.CATEGORICAL and self.default not in self.choices:
            msg = f"Categorical field {self.name!r} needs a default among its choices"
            raise ValueError(msg)


@dataclass(frozen=True)
class AliasTable:
    import_type: ImportType
    fields: tuple[FieldSpec, ...]
    derive_first_name_from_email: bool = False

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def get(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        msg = f"{self.import_type.value} has no field {name!r}"
        raise KeyError(msg)


# ---------------------------------------------------------------------------
# Categorical vocabularies
# ---------------------------------------------------------------------------

DEAL_TYPES = frozenset({"sale", "purchase"})
DEFAULT_DEAL_TYPE = "sale"

DEAL_STAGES = frozenset({"prospect", "negotiation", "won", "lost", "cancelled"})
DEFAULT_DEAL_STAGE = "prospect"

_DEAL_TYPE_SYNONYMS = (
    ("sell", "sale"),
    ("selling", "sale"),
    ("sell_side", "sale"),
    ("venta", "sale"),
    ("buy", "purchase"),
    ("buying", "purchase"),
    ("buy_side", "purchase"),
    ("acquisition", "purchase"),
    ("compra", "purchase"),
)

_DEAL_STAGE_SYNONYMS = (
    ("prospecto", "prospect"),
    ("lead", "prospect"),
    ("en_negociacion", "negotiation"),
    ("negociacion", "negotiation"),
    ("in_negotiation", "negotiation"),
    ("ganado", "won"),
    ("closed_won", "won"),
    ("perdido", "lost"),
    ("closed_lost", "lost"),
    ("cancelado", "cancelled"),
    ("canceled", "cancelled"),
)

# ---------------------------------------------------------------------------
# Shared alias lists
# ---------------------------------------------------------------------------

_FIRST_NAME = (
    "first_name", "nombre", "name", "firstname", "first name", "primer_nombre",
    "nombre_completo", "full_name", "fullname", "contacto", "contact_name",
    "contact", "nombre_contacto", "persona",
)
_LAST_NAME = (
    "last_name", "apellidos", "apellido", "lastname", "surname", "last name",
    "family_name",
)
_EMAIL = (
    "email", "e-mail", "correo", "mail", "correo_electronico", "correo electronico",
    "email_address", "emailaddress", "e_mail", "direccion_email",
)
_PHONE = (
    "phone", "telefono", "teléfono", "mobile", "movil", "móvil", "celular", "tel",
    "telephone", "phone_number", "numero_telefono", "cell", "whatsapp",
)
_POSITION = (
    "position", "cargo", "job_title", "title", "puesto", "rol", "role", "job",
    "ocupacion", "ocupación", "posicion",
)
_COMPANY_NAME = (
    "company_name", "empresa_nombre", "empresa", "company", "compania", "compañia",
    "compañía", "organizacion", "organización", "organization", "org", "cliente",
    "client",
)
_COMPANY_TAX_ID = ("company_tax_id", "empresa_cif", "cif", "tax_id", "vat", "nif")
_COMPANY_WEBSITE = (
    "company_website", "website", "web", "sitio_web", "url", "domain", "dominio",
)
_LINKEDIN = (
    "linkedin", "linkedin_url", "linkedin_profile", "perfil_linkedin", "url_linkedin",
)
_NOTES = (
    "notes", "notas", "comentarios", "comments", "observaciones", "descripcion",
    "description",
)
_SECTOR = ("sector", "industry", "industria", "sector_actividad", "vertical")


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

COMPANY_ALIASES = AliasTable(
    import_type=ImportType.COMPANIES,
    fields=(
        FieldSpec("name", (
            "name", "nombre", "empresa", "company", "company_name", "razon_social",
            "razón social", "nombre_empresa", "business_name", "organization",
        )),
        FieldSpec("tax_id", ("tax_id", "cif", "nif", "vat", "empresa_cif"),
                  kind=FieldKind.IDENTIFIER),
        FieldSpec("website", (
            "website", "sitio_web", "web", "url", "homepage", "domain", "dominio",
        )),
        FieldSpec("sector", _SECTOR),
        FieldSpec("location", (
            "location", "ubicacion", "ubicación", "ciudad", "city", "pais", "país",
            "country", "region", "headquarters", "sede",
        )),
        FieldSpec("revenue", (
            "revenue", "facturacion", "facturación", "ventas", "sales", "ingresos",
            "turnover", "annual_revenue",
        ), kind=FieldKind.NUMERIC),
        FieldSpec("employees", (
            "employees", "empleados", "plantilla", "headcount", "staff",
            "num_empleados", "employee_count",
        ), kind=FieldKind.NUMERIC),
        FieldSpec("description", (
            "description", "descripcion", "descripción", "notes", "notas",
        )),
    ),
)

CONTACT_ALIASES = AliasTable(
    import_type=ImportType.CONTACTS,
    fields=(
        FieldSpec("first_name", _FIRST_NAME),
        FieldSpec("last_name", _LAST_NAME),
        FieldSpec("email", _EMAIL, kind=FieldKind.EMAIL),
        FieldSpec("phone", _PHONE),
        FieldSpec("position", _POSITION),
        FieldSpec("company_name", _COMPANY_NAME),
        FieldSpec("company_tax_id", _COMPANY_TAX_ID, kind=FieldKind.IDENTIFIER),
        FieldSpec("company_website", _COMPANY_WEBSITE),
        FieldSpec("linkedin", _LINKEDIN),
        FieldSpec("notes", _NOTES),
    ),
    derive_first_name_from_email=True,
)

DEAL_ALIASES = AliasTable(
    import_type=ImportType.DEALS,
    fields=(
        FieldSpec("title", (
            "title", "titulo", "título", "name", "nombre", "oportunidad", "deal_name",
            "deal", "opportunity",
        )),
        FieldSpec("deal_type", (
            "deal_type", "tipo", "type", "transaction_type", "operacion", "operación",
        ), kind=FieldKind.CATEGORICAL, choices=DEAL_TYPES,
            synonyms=_DEAL_TYPE_SYNONYMS, default=DEFAULT_DEAL_TYPE),
        FieldSpec("company_name", _COMPANY_NAME),
        FieldSpec("company_tax_id", _COMPANY_TAX_ID, kind=FieldKind.IDENTIFIER),
        FieldSpec("sector", _SECTOR),
        FieldSpec("value", (
            "value", "valor", "amount", "importe", "price", "precio", "deal_value",
        ), kind=FieldKind.NUMERIC),
        FieldSpec("stage", (
            "stage", "estado", "status", "phase", "fase", "etapa",
        ), kind=FieldKind.CATEGORICAL, choices=DEAL_STAGES,
            synonyms=_DEAL_STAGE_SYNONYMS, default=DEFAULT_DEAL_STAGE),
        FieldSpec("start_date", (
            "start_date", "fecha_inicio", "fecha", "date", "created", "creado",
            "fecha_creacion",
        )),
        FieldSpec("description", (
            "description", "descripcion", "descripción", "notes", "notas",
            "comments", "comentarios",
        )),
    ),
)

CAMPAIGN_CONTACT_ALIASES = AliasTable(
    import_type=ImportType.CAMPAIGN_CONTACTS,
    fields=(
        FieldSpec("first_name", _FIRST_NAME),
        FieldSpec("last_name", _LAST_NAME),
        FieldSpec("email", _EMAIL, kind=FieldKind.EMAIL),
        FieldSpec("phone", _PHONE),
        FieldSpec("position", _POSITION),
        FieldSpec("company_name", _COMPANY_NAME),
        FieldSpec("company_website", _COMPANY_WEBSITE),
        FieldSpec("sector", _SECTOR),
        FieldSpec("linkedin", _LINKEDIN),
        FieldSpec("notes", _NOTES),
    ),
    derive_first_name_from_email=True,
)

ALIAS_TABLES: MappingProxyType[ImportType, AliasTable] = MappingProxyType({
    ImportType.COMPANIES: COMPANY_ALIASES,
    ImportType.CONTACTS: CONTACT_ALIASES,
    ImportType.DEALS: DEAL_ALIASES,
    ImportType.CAMPAIGN_CONTACTS: CAMPAIGN_CONTACT_ALIASES,
})


def alias_table(import_type: ImportType) -> AliasTable:
    return ALIAS_TABLES[import_type]
