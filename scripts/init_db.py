"""Initialize the database and seed the indicator catalog."""

import sys
from pathlib import Path

# Add the parent directory to Python path
sys.path.append(str(Path(__file__).parent.parent))

from statportal.config import load_settings
from statportal.database.connection import Base, init_database, session_scope
from statportal.database.models import Category, Indicator, PeriodType

SEED_INDICATORS = [
    {
        "code": "DEM-001",
        "no": 1,
        "name": "Jumlah Penduduk",
        "category": Category.DEMOGRAFI.value,
        "subcategory": "Kependudukan",
        "unit": "Jiwa",
        "period_type": PeriodType.YEARLY.value,
        "source": "BPS",
    },
    {
        "code": "EKO-001",
        "no": 2,
        "name": "Inflasi Bulanan",
        "category": Category.EKONOMI.value,
        "subcategory": "Harga",
        "unit": "Persen",
        "period_type": PeriodType.MONTHLY.value,
        "source": "BPS",
    },
    {
        "code": "EKO-002",
        "no": 3,
        "name": "Pertumbuhan Ekonomi",
        "category": Category.EKONOMI.value,
        "subcategory": "PDRB",
        "unit": "Persen",
        "period_type": PeriodType.QUARTERLY.value,
        "source": "BPS",
    },
    {
        "code": "LH-001",
        "no": 4,
        "name": "Indeks Kualitas Udara",
        "category": Category.LINGKUNGAN.value,
        "subcategory": "Kualitas Lingkungan",
        "unit": "Indeks",
        "period_type": PeriodType.YEARLY.value,
        "source": "KLHK",
    },
]


def create_tables(session_factory):
    """Create all database tables."""
    print("Creating database tables...")
    Base.metadata.create_all(bind=session_factory.kw["bind"])
    print("Database tables created successfully")


def seed_indicators(session_factory):
    """Create the initial indicator catalog entries."""
    print("Seeding indicators...")
    with session_scope(session_factory) as db:
        for data in SEED_INDICATORS:
            existing = db.query(Indicator).filter(Indicator.code == data["code"]).first()
            if existing:
                print(f"Indicator already exists: {data['code']}")
                continue
            db.add(Indicator(**data))
            print(f"Created indicator: {data['code']} {data['name']}")


def main():
    session_factory = init_database(load_settings())
    create_tables(session_factory)
    seed_indicators(session_factory)
    print("Database initialization completed")


if __name__ == "__main__":
    main()
