from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.contact import Contact
from db.utils import utcnow


def find_contact_by_name(db: Session, *, user_id: str, name: str) -> Contact | None:
    return db.execute(
        select(Contact).where(Contact.user_id == user_id, Contact.name_key == name.strip().lower())
    ).scalar_one_or_none()


def list_contacts(db: Session, *, user_id: str) -> list[Contact]:
    stmt = select(Contact).where(Contact.user_id == user_id).order_by(Contact.name_key.asc())
    return list(db.execute(stmt).scalars().all())


def save_contact(
    db: Session,
    *,
    user_id: str,
    name: str,
    address: str,
    notes: str | None = None,
) -> Contact:
    contact = find_contact_by_name(db, user_id=user_id, name=name)
    if contact is None:
        contact = Contact(user_id=user_id, name=name.strip(), name_key=name.strip().lower(), address=address)
    else:
        contact.address = address
    if notes is not None:
        contact.notes = notes

    db.add(contact)
    db.commit()
    db.refresh(contact)
    return contact


def delete_contact(db: Session, *, user_id: str, name: str) -> bool:
    contact = find_contact_by_name(db, user_id=user_id, name=name)
    if contact is None:
        return False
    db.delete(contact)
    db.commit()
    return True


def touch_contact(db: Session, *, contact: Contact) -> None:
    contact.last_used_at = utcnow()
    db.add(contact)
    db.commit()
