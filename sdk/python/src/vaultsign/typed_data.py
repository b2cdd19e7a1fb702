"""EIP-712 typed-data envelope construction.

Signing clients hash the domain with the field order of the
``EIP712Domain`` type, so that order is fixed here and always placed
ahead of the caller's types.
"""

from typing import Any, Mapping, Sequence

from vaultsign.errors import TypedDataError
from vaultsign.types import DomainDescriptor, TypedDataEnvelope, TypeField

EIP712_DOMAIN = "EIP712Domain"

EIP712_DOMAIN_TYPE: tuple[TypeField, ...] = (
    TypeField(name="name", type="string"),
    TypeField(name="version", type="string"),
    TypeField(name="chainId", type="uint256"),
    TypeField(name="verifyingContract", type="address"),
)

EXAMPLE_PRIMARY_TYPE = "MyStruct"

EXAMPLE_TYPES: dict[str, list[dict[str, str]]] = {
    EXAMPLE_PRIMARY_TYPE: [
        {"name": "someValue", "type": "uint256"},
        {"name": "someString", "type": "string"},
    ],
}


def _fields(fields: Sequence[TypeField | Mapping[str, str]]) -> list[TypeField]:
    return [
        field if isinstance(field, TypeField) else TypeField.model_validate(field)
        for field in fields
    ]


def buildTypedData(
    domain: DomainDescriptor | Mapping[str, Any],
    customTypes: Mapping[str, Sequence[TypeField | Mapping[str, str]]],
    primaryType: str,
    message: Mapping[str, Any],
) -> TypedDataEnvelope:
    if EIP712_DOMAIN in customTypes:
        raise TypedDataError(f"customTypes must not redefine {EIP712_DOMAIN}")

    if primaryType not in customTypes:
        raise TypedDataError(f"primaryType '{primaryType}' must be defined in types")

    if not isinstance(domain, DomainDescriptor):
        domain = DomainDescriptor.model_validate(domain)

    types = {EIP712_DOMAIN: list(EIP712_DOMAIN_TYPE)}
    for name, fields in customTypes.items():
        types[name] = _fields(fields)

    return TypedDataEnvelope(
        domain=domain,
        types=types,
        primaryType=primaryType,
        message=dict(message),
    )


def validateTypedData(envelope: TypedDataEnvelope) -> None:
    """Raise ``TypedDataError`` if the envelope is malformed.

    Checks that ``primaryType`` keys into ``types``, that the domain type is
    the canonical one, and that the message carries exactly the fields the
    primary type declares.
    """
    if envelope.types.get(EIP712_DOMAIN) != list(EIP712_DOMAIN_TYPE):
        raise TypedDataError(f"{EIP712_DOMAIN} must be the canonical 4-field type")

    if envelope.primaryType not in envelope.types:
        raise TypedDataError(
            f"primaryType '{envelope.primaryType}' must be defined in types"
        )

    declared = [field.name for field in envelope.types[envelope.primaryType]]

    undeclared = [name for name in envelope.message if name not in declared]
    if undeclared:
        raise TypedDataError(
            f"message fields {undeclared} are not declared on {envelope.primaryType}"
        )

    missing = [name for name in declared if name not in envelope.message]
    if missing:
        raise TypedDataError(
            f"message is missing {envelope.primaryType} fields {missing}"
        )
