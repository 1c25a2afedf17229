"""
Domain: customer intake data.

CustomerData is a flat field-name -> value mapping owned by exactly one Sale.
This module defines the known intake fields, the "identity-bearing" check used
by draft autosave, and the validation applied on submission.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Union

CustomerValue = Union[str, int]
CustomerData = Dict[str, CustomerValue]

# Identity-bearing fields: a draft with both empty is never persisted.
IDENTITY_FIELDS = ("nome", "cpf")

INTAKE_FIELDS = (
    "nome", "cpf", "data_nascimento", "nome_mae", "contato", "email",
    "rua", "numero", "complemento", "bairro", "cidade", "estado", "cep",
    "plano", "vencimento_dia", "anotacoes",
    "audio_url", "foto_frente_url", "foto_verso_url", "foto_ctps_url",
    "foto_comprovante_residencia_url",
)

REQUIRED_ON_SUBMIT = ("plano", "cep", "rua", "numero", "audio_url")

DEFAULT_DUE_DAY = 10

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def empty_customer_data() -> CustomerData:
    data: CustomerData = {name: "" for name in INTAKE_FIELDS}
    data["vencimento_dia"] = DEFAULT_DUE_DAY
    return data


def normalize_customer_data(raw: Mapping[str, Any]) -> CustomerData:
    """Copy stored/submitted data, keeping only str/int values and known defaults."""

    data = empty_customer_data()
    for key, value in raw.items():
        if value is None:
            continue
        data[str(key)] = value if isinstance(value, int) else str(value)
    return data


def _text(data: Mapping[str, Any], field: str) -> str:
    value = data.get(field)
    return "" if value is None else str(value).strip()


def has_identity(data: Mapping[str, Any]) -> bool:
    return any(_text(data, field) for field in IDENTITY_FIELDS)


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value)


def is_valid_cpf(value: str) -> bool:
    cpf = _digits(value)
    if len(cpf) != 11 or cpf == cpf[0] * 11:
        return False
    for size in (9, 10):
        total = sum(int(cpf[i]) * (size + 1 - i) for i in range(size))
        check = (total * 10) % 11 % 10
        if check != int(cpf[size]):
            return False
    return True


def is_valid_cnpj(value: str) -> bool:
    cnpj = _digits(value)
    if len(cnpj) != 14 or cnpj == cnpj[0] * 14:
        return False
    weights = [5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]
    for size in (12, 13):
        w = weights if size == 12 else [6] + weights
        total = sum(int(cnpj[i]) * w[i] for i in range(size))
        remainder = total % 11
        check = 0 if remainder < 2 else 11 - remainder
        if check != int(cnpj[size]):
            return False
    return True


def validate_for_submission(data: Mapping[str, Any]) -> Dict[str, str]:
    """
    Validate an intake form before it leaves DRAFT.

    Returns:
        Mapping of field name -> message (empty when the form is valid)
    """

    errors: Dict[str, str] = {}

    if len(_text(data, "nome")) <= 3:
        errors["nome"] = "Name too short"

    document = _digits(_text(data, "cpf"))
    if not document:
        errors["cpf"] = "Required"
    elif len(document) == 11 and not is_valid_cpf(document):
        errors["cpf"] = "Invalid CPF"
    elif len(document) == 14 and not is_valid_cnpj(document):
        errors["cpf"] = "Invalid CNPJ"
    elif len(document) not in (11, 14):
        errors["cpf"] = "Invalid CPF/CNPJ"

    email = _text(data, "email")
    if not email:
        errors["email"] = "Required"
    elif not _EMAIL_RE.match(email):
        errors["email"] = "Invalid e-mail format"

    for field in REQUIRED_ON_SUBMIT:
        if not _text(data, field):
            errors[field] = "Required"

    return errors


__all__ = [
    "CustomerData",
    "IDENTITY_FIELDS",
    "INTAKE_FIELDS",
    "empty_customer_data",
    "normalize_customer_data",
    "has_identity",
    "is_valid_cpf",
    "is_valid_cnpj",
    "validate_for_submission",
]
