"""Mapped record types shared by the test suite."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import JSON, ForeignKey, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, composite, mapped_column, relationship


class Base(DeclarativeBase):
    pass


@dataclass
class Address:
    street: str
    city: str


class Company(Base):
    __tablename__ = "company"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100))

    employees: Mapped[list[Person]] = relationship(back_populates="company")


class Person(Base):
    __tablename__ = "person"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    first_name: Mapped[str] = mapped_column(String(50))
    lastName: Mapped[str] = mapped_column("last_name", String(50))
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    address: Mapped[Address] = composite(
        mapped_column("street", String(100), nullable=True),
        mapped_column("city", String(100), nullable=True),
    )
    nicknames: Mapped[list[str]] = mapped_column(JSON, default=list)
    company_id: Mapped[int | None] = mapped_column(ForeignKey("company.id"), nullable=True)

    company: Mapped[Company | None] = relationship(back_populates="employees")

    def full_name(self) -> str:
        return f"{self.first_name} {self.lastName}"
