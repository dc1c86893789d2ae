from __future__ import annotations

from typing import Protocol
from uuid import UUID

from app.models.certificate import Certificate
from app.services.errors import CertificateAlreadyExistsError


class CertificateRepo(Protocol):
    async def get_for_user_course(
        self, user_id: UUID, course_id: UUID
    ) -> Certificate | None: ...
    async def get_by_verification_code(self, code: str) -> Certificate | None: ...
    async def list_for_user(self, user_id: UUID) -> list[Certificate]: ...
    async def add(self, certificate: Certificate) -> None:
        """Insert once.  Raises CertificateAlreadyExistsError on any unique key clash."""
        ...


class InMemoryCertificateRepo:
    """Enforces the same unique keys as the certificates table."""

    def __init__(self) -> None:
        self._by_key: dict[tuple[UUID, UUID], Certificate] = {}
        self._by_code: dict[str, Certificate] = {}
        self._numbers: set[str] = set()

    async def get_for_user_course(
        self, user_id: UUID, course_id: UUID
    ) -> Certificate | None:
        return self._by_key.get((user_id, course_id))

    async def get_by_verification_code(self, code: str) -> Certificate | None:
        return self._by_code.get(code)

    async def list_for_user(self, user_id: UUID) -> list[Certificate]:
        certs = [c for (uid, _), c in self._by_key.items() if uid == user_id]
        return sorted(certs, key=lambda c: c.issued_at)

    async def add(self, certificate: Certificate) -> None:
        key = (certificate.user_id, certificate.course_id)
        if (
            key in self._by_key
            or certificate.verification_code in self._by_code
            or certificate.certificate_number in self._numbers
        ):
            raise CertificateAlreadyExistsError(
                "certificate already exists",
                {"user_id": str(key[0]), "course_id": str(key[1])},
            )
        self._by_key[key] = certificate
        self._by_code[certificate.verification_code] = certificate
        self._numbers.add(certificate.certificate_number)

    def clear(self) -> None:
        self._by_key.clear()
        self._by_code.clear()
        self._numbers.clear()
