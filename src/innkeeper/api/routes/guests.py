"""Guests endpoints.

GET  /guests  → list, newest first
POST /guests  → create (201); 409 if the e-mail is already registered

Guest rows are PII: only ids reach the logs.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, HTTPException, Query, Request
from psycopg2 import errors as pg_errors
from pydantic import BaseModel, ConfigDict, field_validator

from innkeeper.api.deps import transaction
from innkeeper.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/guests", tags=["guests"])


# ── Schemas ───────────────────────────────────────────────────────────────────


class CreateGuestRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    address: str | None = None
    date_of_birth: date | None = None
    id_number: str | None = None

    @field_validator("first_name", "last_name", "email")
    @classmethod
    def _required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


# ── Helper ────────────────────────────────────────────────────────────────────


_COLUMNS = """
    id, first_name, last_name, email, phone, address,
    date_of_birth, id_number, created_at
"""


def _row_to_dict(row: tuple) -> dict:
    return {
        "id": str(row[0]),
        "first_name": row[1],
        "last_name": row[2],
        "email": row[3],
        "phone": row[4],
        "address": row[5],
        "date_of_birth": row[6].isoformat() if row[6] is not None else None,
        "id_number": row[7],
        "created_at": row[8].isoformat() if hasattr(row[8], "isoformat") else str(row[8]),
    }


# ── GET /guests ───────────────────────────────────────────────────────────────


@router.get("")
def list_guests(
    request: Request,
    limit: int = Query(500, ge=1, le=500),
) -> list[dict]:
    with transaction(request) as cur:
        cur.execute(
            f"SELECT {_COLUMNS} FROM guests ORDER BY created_at DESC LIMIT %s",
            (limit,),
        )
        rows = cur.fetchall()

    return [_row_to_dict(r) for r in rows]


# ── POST /guests ──────────────────────────────────────────────────────────────


@router.post("", status_code=201)
def create_guest(body: CreateGuestRequest, request: Request) -> dict:
    """Create a guest. E-mails are stored lower-cased and must be unique."""
    with transaction(request) as cur:
        try:
            cur.execute(
                f"""
                INSERT INTO guests
                    (first_name, last_name, email, phone, address,
                     date_of_birth, id_number)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING {_COLUMNS}
                """,
                (
                    body.first_name,
                    body.last_name,
                    body.email.lower(),
                    body.phone.strip() if body.phone else None,
                    body.address,
                    body.date_of_birth,
                    body.id_number.strip() if body.id_number else None,
                ),
            )
            row = cur.fetchone()
        except pg_errors.UniqueViolation:
            raise HTTPException(status_code=409, detail="Email already exists")

    guest = _row_to_dict(row)
    logger.info(
        "guest created",
        extra={"extra_fields": {"guest_id": guest["id"]}},
    )
    return guest
